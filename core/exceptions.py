"""Marketplace error kinds.

Every failure a lifecycle operation can report is a subclass of
MarketplaceError. Views turn them into ``{"error", "code"}`` responses with
the class's status code; nothing here is retried automatically.
"""
from rest_framework import status


class MarketplaceError(Exception):
    status_code = status.HTTP_400_BAD_REQUEST
    code = 'marketplace_error'
    default_message = 'Marketplace operation failed'

    def __init__(self, message=None):
        self.message = message or self.default_message
        super().__init__(self.message)


class NotFound(MarketplaceError):
    status_code = status.HTTP_404_NOT_FOUND
    code = 'not_found'
    default_message = 'Not found'


class JobNotFound(NotFound):
    code = 'job_not_found'
    default_message = 'Job not found'


class BidNotFound(NotFound):
    code = 'bid_not_found'
    default_message = 'Bid not found'


class ProjectNotFound(NotFound):
    code = 'project_not_found'
    default_message = 'Project not found'


class ProgressUpdateNotFound(NotFound):
    code = 'progress_update_not_found'
    default_message = 'Progress update not found'


class IssueNotFound(NotFound):
    code = 'issue_not_found'
    default_message = 'Issue not found'


class Forbidden(MarketplaceError):
    status_code = status.HTTP_403_FORBIDDEN
    code = 'forbidden'
    default_message = 'You are not allowed to perform this action'


class NotOwner(Forbidden):
    code = 'not_owner'
    default_message = 'You can only change your own bids'


class NotPoster(Forbidden):
    code = 'not_poster'
    default_message = 'Only the job poster can perform this action'


class NotAuthor(Forbidden):
    code = 'not_author'
    default_message = 'You can only change your own updates'


class NotAssignee(Forbidden):
    code = 'not_assignee'
    default_message = 'You are not assigned to this job'


class InvalidTransition(MarketplaceError):
    code = 'invalid_transition'
    default_message = 'Invalid status transition'


class JobNotOpen(InvalidTransition):
    code = 'job_not_open'
    default_message = 'This job is not accepting bids'


class BidNotPending(InvalidTransition):
    code = 'bid_not_pending'
    default_message = 'Only pending bids can be changed'


class DuplicateBid(MarketplaceError):
    code = 'duplicate_bid'
    default_message = 'You have already submitted a bid for this job'


class EditWindowExpired(MarketplaceError):
    code = 'edit_window_expired'
    default_message = 'The edit window for this update has closed'


class DeleteWindowExpired(MarketplaceError):
    code = 'delete_window_expired'
    default_message = 'The delete window for this update has closed'


class Conflict(MarketplaceError):
    """Another writer committed to the same aggregate first.

    The only error a caller may reasonably retry, by reloading and
    re-running the whole operation.
    """
    status_code = status.HTTP_409_CONFLICT
    code = 'conflict'
    default_message = 'The job was modified concurrently, reload and try again'


class InvalidInput(MarketplaceError):
    code = 'invalid_input'
    default_message = 'Invalid input'
