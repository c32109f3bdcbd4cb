"""Global Outreach CMS - Backend.

Content management API for a non-profit website:
- Users with viewer < editor < admin roles, JWT bearer auth.
- Pages, blog posts (with categories), generic content records, media uploads.
- Site tables: events, donations, contact submissions, newsletter, settings.

Start the API with `python scripts/run_api.py`.
"""

__all__ = ["__version__"]

__version__ = "1.0.0"
