# core/constants.py
USER_ROLE_CHOICES = (
    ('customer', 'Customer'),       # Owns projects and posts jobs
    ('contractor', 'Contractor'),   # Bids on jobs and reports progress
    ('admin', 'Admin'),
)

JOB_STATUS_CHOICES = (
    ('draft', 'Draft'),             # Created but not visible to contractors
    ('open', 'Open'),               # Accepting bids
    ('in_review', 'In Review'),     # Poster is reviewing bids, no new bids
    ('assigned', 'Assigned'),       # A bid was accepted
    ('in_progress', 'In Progress'), # Assigned contractor started work
    ('completed', 'Completed'),
    ('cancelled', 'Cancelled'),
)

TERMINAL_JOB_STATUSES = ('completed', 'cancelled')

# Valid transitions: {from_status: {allowed_to_statuses}}
JOB_TRANSITIONS = {
    'draft': {'open', 'cancelled'},
    'open': {'in_review', 'assigned', 'cancelled'},
    'in_review': {'open', 'assigned', 'cancelled'},
    'assigned': {'in_progress'},
    'in_progress': {'completed'},
    'completed': set(),
    'cancelled': set(),
}

BID_STATUS_CHOICES = (
    ('pending', 'Pending'),         # Submitted, awaiting poster response
    ('accepted', 'Accepted'),
    ('rejected', 'Rejected'),
    ('withdrawn', 'Withdrawn'),     # Pulled back by the contractor
)

ANOTHER_BID_ACCEPTED_NOTE = 'Another bid was accepted'
JOB_CANCELLED_NOTE = 'Job was cancelled'

BUDGET_TYPE_CHOICES = (
    ('fixed', 'Fixed'),
    ('hourly', 'Hourly'),
    ('negotiable', 'Negotiable'),
)

TIMELINE_FLEXIBILITY_CHOICES = (
    ('fixed', 'Fixed'),
    ('flexible', 'Flexible'),
    ('asap', 'As soon as possible'),
)

WORK_TYPE_CHOICES = (
    ('full_construction', 'Full Construction'),
    ('renovation', 'Renovation'),
    ('repair', 'Repair'),
    ('consultation', 'Consultation'),
    ('supervision', 'Supervision'),
    ('specific_task', 'Specific Task'),
)

PROGRESS_UPDATE_TYPE_CHOICES = (
    ('daily', 'Daily'),
    ('weekly', 'Weekly'),
    ('milestone', 'Milestone'),
    ('issue', 'Issue'),
    ('completion', 'Completion'),
    ('general', 'General'),
)

WORK_ITEM_STATUS_CHOICES = (
    ('completed', 'Completed'),
    ('in_progress', 'In Progress'),
    ('blocked', 'Blocked'),
)

SEVERITY_CHOICES = (
    ('low', 'Low'),
    ('medium', 'Medium'),
    ('high', 'High'),
    ('critical', 'Critical'),
)

WEATHER_IMPACT_CHOICES = (
    ('none', 'None'),
    ('minor', 'Minor'),
    ('moderate', 'Moderate'),
    ('severe', 'Severe'),
)

NOTIFICATION_TYPE_CHOICES = (
    ('bid-submitted', 'Bid submitted'),
    ('bid-accepted', 'Bid accepted'),
    ('bid-rejected', 'Bid rejected'),
    ('bid-withdrawn', 'Bid withdrawn'),
    ('job-started', 'Job started'),
    ('job-completed', 'Job completed'),
    ('job-cancelled', 'Job cancelled'),
    ('progress-update', 'Progress update'),
    ('progress-acknowledged', 'Progress acknowledged'),
    ('comment-added', 'Comment added'),
    ('system', 'System'),
)

WORKLOAD_ENTRY_KIND_CHOICES = (
    ('assignment', 'Assignment'),
    ('completion', 'Completion'),
)
