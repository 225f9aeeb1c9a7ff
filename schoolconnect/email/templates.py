"""
HTML bodies and subjects for announcement emails.
"""

from __future__ import annotations

from html import escape

from schoolconnect.models import Announcement, User

PRIORITY_STYLE = {
    # priority: (subject prefix, accent colour, badge)
    "urgent": ("\U0001F6A8 URGENT: ", "#dc2626", "URGENT"),
    "normal": ("\U0001F4E2 ", "#1e40af", "ANNOUNCEMENT"),
    "low": ("\U0001F4AC ", "#6b7280", "NOTICE"),
}


def announcement_subject(announcement: Announcement) -> str:
    prefix = PRIORITY_STYLE.get(announcement.priority, PRIORITY_STYLE["normal"])[0]
    return f"{prefix}{announcement.title} - SchoolConnect"


def audience_text(audience: list[str]) -> str:
    """Human phrase for the audience list: "students and parents" etc."""
    if "all" in audience:
        return "all school community members"
    parts = [aud for aud in audience if aud != "all"]
    if len(parts) <= 1:
        return "".join(parts)
    if len(parts) == 2:
        return f"{parts[0]} and {parts[1]}"
    return ", ".join(parts[:-1]) + f", and {parts[-1]}"


def format_content(content: str) -> str:
    lines = [line.strip() for line in content.split("\n")]
    return "".join(
        f'<p style="margin: 0 0 15px 0; color: #374151;">{escape(line)}</p>' for line in lines if line
    )


def announcement_html(announcement: Announcement, recipient: User, author: User | None, app_url: str) -> str:
    _, colour, badge = PRIORITY_STYLE.get(announcement.priority, PRIORITY_STYLE["normal"])
    author_name = author.display_name if author else "SchoolConnect Team"
    published = (announcement.published_at or announcement.created_at).strftime("%A, %B %d, %Y %H:%M UTC")
    title = escape(announcement.title)
    view_url = f"{app_url.rstrip('/')}/dashboard"

    return f"""<!DOCTYPE html>
<html>
<head>
  <meta charset="utf-8">
  <title>{title} - SchoolConnect</title>
</head>
<body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333; max-width: 600px; margin: 0 auto; padding: 20px;">
  <div style="background: {colour}; padding: 30px; text-align: center; border-radius: 10px 10px 0 0;">
    <span style="color: white; font-size: 12px; font-weight: bold; text-transform: uppercase;">{badge}</span>
    <h1 style="color: white; margin: 0; font-size: 24px;">{title}</h1>
  </div>
  <div style="background: white; padding: 30px; border-radius: 0 0 10px 10px;">
    <div style="border-left: 4px solid {colour}; padding-left: 20px; margin-bottom: 25px;">
      <h2 style="color: #1e40af; margin-top: 0; font-size: 16px;">Hi {escape(recipient.first_name)},</h2>
      <p style="margin: 0; color: #666; font-size: 14px;">From: {escape(author_name)}</p>
      <p style="margin: 5px 0 0 0; color: #666; font-size: 14px;">Published: {published}</p>
    </div>
    <div style="margin: 25px 0; padding: 20px; background: #f8fafc; border-radius: 8px;">
      {format_content(announcement.content)}
    </div>
    <div style="text-align: center; margin: 30px 0;">
      <a href="{escape(view_url)}" style="background: {colour}; color: white; padding: 12px 30px; text-decoration: none; border-radius: 5px;">View in Dashboard</a>
    </div>
    <hr style="border: none; border-top: 1px solid #eee; margin: 30px 0;">
    <p style="color: #666; font-size: 12px; text-align: center;">
      This announcement was sent to {audience_text(list(announcement.audience))}.
    </p>
  </div>
</body>
</html>
"""
