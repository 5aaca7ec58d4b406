# Subject/body templates per event type. Payload keys missing from a
# template's context fall back to an empty string.
NOTIFICATION_TEMPLATES = {
    'bid-submitted': (
        "New bid on {job_title}",
        "{contractor_name} bid {amount} on your job '{job_title}'.",
    ),
    'bid-accepted': (
        "Bid accepted for {job_title}",
        "Your bid for '{job_title}' was accepted. You can start work once you are ready.",
    ),
    'bid-rejected': (
        "Bid not selected for {job_title}",
        "Your bid for '{job_title}' was not selected. {note}",
    ),
    'bid-withdrawn': (
        "Bid withdrawn on {job_title}",
        "{contractor_name} withdrew their bid on '{job_title}'.",
    ),
    'job-started': (
        "Work started on {job_title}",
        "{contractor_name} has started work on '{job_title}'.",
    ),
    'job-completed': (
        "Work completed on {job_title}",
        "{contractor_name} marked '{job_title}' as completed.",
    ),
    'job-cancelled': (
        "Job cancelled: {job_title}",
        "The job '{job_title}' was cancelled. Reason: {reason}",
    ),
    'progress-update': (
        "New progress update on {project_name}",
        "{contractor_name} posted a {update_type} update: {description}",
    ),
    'progress-acknowledged': (
        "Update acknowledged on {project_name}",
        "Your {update_type} update on '{project_name}' was acknowledged.",
    ),
    'comment-added': (
        "New comment on {project_name}",
        "{author_name} commented: {text}",
    ),
    'system': (
        "{title}",
        "{message}",
    ),
}


class _Blank(dict):
    def __missing__(self, key):
        return ''


def render(event_type, payload):
    """Return (title, message) for an event, trimmed to the column sizes."""
    try:
        subject, body = NOTIFICATION_TEMPLATES[event_type]
    except KeyError:
        raise ValueError(f"Unknown notification type: {event_type}")
    context = _Blank(payload)
    title = subject.format_map(context).strip()
    message = body.format_map(context).strip()
    return title[:200], message[:500]
