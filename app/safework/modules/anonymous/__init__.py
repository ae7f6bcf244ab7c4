"""
Anonymous reporting module.

Reporter identity never touches the report: no user, employee, session or raw IP is stored.
The reporter holds a one-time access token (only its sha256 is persisted) and uses it to
follow the report and reply to management questions.
"""
