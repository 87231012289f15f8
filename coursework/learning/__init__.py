"""Learning context: what a learner does with an assignment.

Marks `coursework.learning` as a proper package so imports like
`from coursework.learning.status import derive_status` work reliably when
installed.
"""
