"""
AccessRequest model with approval workflow.
"""
from enum import Enum

from minidrive.extensions import db
from minidrive.models.permission import permission_type_enum
from minidrive.models.user import enum_values
from minidrive.utils.timezone import utcnow


class RequestStatus(str, Enum):
    """Access request status enumeration."""
    PENDING = 'pending'
    APPROVED = 'approved'
    DENIED = 'denied'


# Valid status transitions; approved and denied are terminal
REQUEST_STATUS_TRANSITIONS = {
    RequestStatus.PENDING: [RequestStatus.APPROVED, RequestStatus.DENIED],
    RequestStatus.APPROVED: [],
    RequestStatus.DENIED: [],
}


def statuses_leading_to(target_status):
    """Statuses a request may be in for a move to ``target_status`` to be allowed."""
    return [
        status for status, targets in REQUEST_STATUS_TRANSITIONS.items()
        if target_status in targets
    ]


class AccessRequest(db.Model):
    """A user's request for a permission level on someone else's file."""

    __tablename__ = 'access_requests'
    __table_args__ = (
        # At most one pending request per (file, requester)
        db.Index(
            'uq_access_request_pending',
            'file_id',
            'requested_by_id',
            unique=True,
            postgresql_where=db.text("status = 'pending'"),
            sqlite_where=db.text("status = 'pending'"),
        ),
    )

    id = db.Column(db.Integer, primary_key=True)
    file_id = db.Column(
        db.Integer,
        db.ForeignKey('files.id', ondelete='CASCADE'),
        nullable=False,
        index=True
    )
    requested_by_id = db.Column(
        db.Integer,
        db.ForeignKey('users.id', ondelete='CASCADE'),
        nullable=False,
        index=True
    )
    # Copied from the file at creation time
    owner_id = db.Column(
        db.Integer,
        db.ForeignKey('users.id', ondelete='CASCADE'),
        nullable=False,
        index=True
    )
    requested_permission = db.Column(
        permission_type_enum,
        nullable=False
    )
    message = db.Column(db.Text)

    status = db.Column(
        db.Enum(RequestStatus, name='request_status', values_callable=enum_values),
        default=RequestStatus.PENDING,
        nullable=False,
        index=True
    )

    created_at = db.Column(db.DateTime, default=utcnow, index=True)
    responded_at = db.Column(db.DateTime)
    responded_by_id = db.Column(
        db.Integer,
        db.ForeignKey('users.id', ondelete='SET NULL'),
        nullable=True
    )

    # Relationships
    file = db.relationship('File', back_populates='access_requests')
    requested_by = db.relationship('User', foreign_keys=[requested_by_id])
    owner = db.relationship('User', foreign_keys=[owner_id])
    responded_by = db.relationship('User', foreign_keys=[responded_by_id])

    def __repr__(self):
        return f'<AccessRequest {self.id} file={self.file_id} {self.status.value}>'

    @property
    def is_pending(self):
        return self.status == RequestStatus.PENDING

    @property
    def is_terminal(self):
        """Approved and denied requests never change again."""
        return not REQUEST_STATUS_TRANSITIONS.get(self.status)

    def can_transition_to(self, target_status):
        return self.status in statuses_leading_to(target_status)
