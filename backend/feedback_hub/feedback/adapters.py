"""Normalise source-specific webhook payloads into feedback items.

Every adapter is a pure function ``payload -> list[{"content", "metadata"}]``.
Optional fields are looked up through explicit, ordered fallback tuples; a
missing field never raises. An adapter returns an empty list when the payload
carries nothing it recognises.
"""

import json
from collections.abc import Callable
from typing import Any

import structlog

logger = structlog.get_logger()

FeedbackItem = dict[str, Any]

# ---------------------------------------------------------------------------
# Fallback field orders (first non-empty value wins)
# ---------------------------------------------------------------------------

_DISCORD_AUTHOR_FIELDS = ("username", "name")
_TWEET_TEXT_FIELDS = ("text", "full_text")

_EMAIL_BODY_FIELDS = ("body", "text", "html")
_EMAIL_FROM_FIELDS = ("from", "sender")
_EMAIL_TO_FIELDS = ("to", "recipient")
_EMAIL_ID_FIELDS = ("message_id", "id")
_EMAIL_DATE_FIELDS = ("date", "timestamp")

_TICKET_ID_FIELDS = ("id", "number")
_TICKET_SUBJECT_FIELDS = ("subject", "title")
_TICKET_BODY_FIELDS = ("description", "body", "content")
_FLAT_TICKET_ID_FIELDS = ("id", "ticket_id")
_FLAT_TICKET_BODY_FIELDS = ("content", "body", "description")
_REQUESTER_FIELDS = ("requester", "customer")
_CREATED_FIELDS = ("created_at", "created")

_POST_BODY_FIELDS = ("content", "body", "text")
_POST_AUTHOR_FIELDS = ("author", "user")


def _first(data: dict, fields: tuple[str, ...]) -> Any:
    """Return the first non-empty value among *fields*, or None."""
    for field in fields:
        value = data.get(field)
        if value not in (None, "", [], {}):
            return value
    return None


def _obj(data: dict, key: str) -> dict:
    """Nested object lookup that tolerates absent or non-object values."""
    value = data.get(key)
    return value if isinstance(value, dict) else {}


def _text(value: Any) -> str:
    return "" if value is None else str(value)


def _compact(metadata: dict) -> dict:
    """Drop keys whose value is absent so stored metadata stays sparse."""
    return {k: v for k, v in metadata.items() if v is not None}


def _with_body(header: str, body: Any) -> str:
    """Header and body joined by a blank line."""
    return f"{header}\n\n{_text(body)}"


# ---------------------------------------------------------------------------
# Source adapters
# ---------------------------------------------------------------------------


def adapt_github(payload: dict) -> list[FeedbackItem]:
    """Issues, issue comments and discussions. A comment event yields the issue too."""
    items: list[FeedbackItem] = []
    action = payload.get("action")
    issue = _obj(payload, "issue")
    comment = _obj(payload, "comment")
    discussion = _obj(payload, "discussion")

    if issue:
        number = _text(issue.get("number"))
        items.append({
            "content": _with_body(f"Issue #{number}: {_text(issue.get('title'))}", issue.get("body")),
            "metadata": _compact({
                "issue_number": issue.get("number"),
                "issue_url": issue.get("html_url"),
                "author": _obj(issue, "user").get("login"),
                "labels": [
                    label.get("name") for label in issue.get("labels") or []
                    if isinstance(label, dict)
                ],
                "state": issue.get("state"),
                "action": action,
            }),
        })

    if comment and issue:
        items.append({
            "content": f"Comment on Issue #{_text(issue.get('number'))}: {_text(comment.get('body'))}",
            "metadata": _compact({
                "issue_number": issue.get("number"),
                "issue_url": issue.get("html_url"),
                "comment_id": comment.get("id"),
                "author": _obj(comment, "user").get("login"),
                "action": action,
            }),
        })

    if discussion:
        items.append({
            "content": _with_body(f"Discussion: {_text(discussion.get('title'))}", discussion.get("body")),
            "metadata": _compact({
                "discussion_number": discussion.get("number"),
                "discussion_url": discussion.get("html_url"),
                "author": _obj(discussion, "user").get("login"),
                "category": _obj(discussion, "category").get("name"),
                "action": action,
            }),
        })

    return items


def _render_embed(embed: dict) -> str:
    lines: list[str] = []
    if embed.get("title"):
        lines.append(f"**{embed['title']}**")
    if embed.get("description"):
        lines.append(_text(embed["description"]))
    for field in embed.get("fields") or []:
        if isinstance(field, dict):
            lines.append(f"**{_text(field.get('name'))}**: {_text(field.get('value'))}")
    return "\n".join(lines)


def adapt_discord(payload: dict) -> list[FeedbackItem]:
    """A single Discord message, with any embeds rendered below the text."""
    content = _text(payload.get("content"))
    embeds = [e for e in payload.get("embeds") or [] if isinstance(e, dict)]
    if not content and not embeds:
        return []

    if embeds:
        content += "\n\n" + "\n\n".join(_render_embed(e) for e in embeds)

    author = _obj(payload, "author")
    return [{
        "content": content.strip(),
        "metadata": _compact({
            "channel_id": payload.get("channel_id"),
            "guild_id": payload.get("guild_id"),
            "author": _first(author, _DISCORD_AUTHOR_FIELDS),
            "author_id": author.get("id"),
            "message_id": payload.get("id"),
            "timestamp": payload.get("timestamp"),
        }),
    }]


def adapt_twitter(payload: dict) -> list[FeedbackItem]:
    """Tweet objects and flat direct-mention payloads."""
    items: list[FeedbackItem] = []

    tweet = _obj(payload, "tweet")
    if tweet:
        user = _obj(tweet, "user")
        screen_name = user.get("screen_name")
        items.append({
            "content": _text(_first(tweet, _TWEET_TEXT_FIELDS)),
            "metadata": _compact({
                "tweet_id": tweet.get("id"),
                "author": screen_name,
                "author_id": user.get("id"),
                "created_at": tweet.get("created_at"),
                "url": f"https://twitter.com/{_text(screen_name)}/status/{_text(tweet.get('id'))}",
            }),
        })

    if payload.get("text"):
        items.append({
            "content": _text(payload["text"]),
            "metadata": _compact({
                "tweet_id": payload.get("id"),
                "author": payload.get("author"),
                "created_at": payload.get("created_at"),
                "url": payload.get("url"),
            }),
        })

    return items


def adapt_email(payload: dict) -> list[FeedbackItem]:
    if not (payload.get("subject") or payload.get("body") or payload.get("text")):
        return []
    subject = payload.get("subject") or "No Subject"
    return [{
        "content": _with_body(f"Subject: {subject}", _first(payload, _EMAIL_BODY_FIELDS)),
        "metadata": _compact({
            "from": _first(payload, _EMAIL_FROM_FIELDS),
            "to": _first(payload, _EMAIL_TO_FIELDS),
            "subject": payload.get("subject"),
            "message_id": _first(payload, _EMAIL_ID_FIELDS),
            "date": _first(payload, _EMAIL_DATE_FIELDS),
        }),
    }]


def adapt_support_ticket(payload: dict) -> list[FeedbackItem]:
    """Helpdesk tickets, either wrapped in ``ticket`` or sent flat."""
    ticket = _obj(payload, "ticket")
    if ticket:
        ticket_id = _first(ticket, _TICKET_ID_FIELDS)
        header = f"Ticket #{_text(ticket_id)}: {_text(_first(ticket, _TICKET_SUBJECT_FIELDS))}"
        return [{
            "content": _with_body(header, _first(ticket, _TICKET_BODY_FIELDS)),
            "metadata": _compact({
                "ticket_id": ticket_id,
                "status": ticket.get("status"),
                "priority": ticket.get("priority"),
                "requester": _first(ticket, _REQUESTER_FIELDS),
                "created_at": _first(ticket, _CREATED_FIELDS),
                "url": ticket.get("url"),
            }),
        }]

    if payload.get("subject") or payload.get("content"):
        subject = payload.get("subject") or "No Subject"
        return [{
            "content": _with_body(f"Subject: {subject}", _first(payload, _FLAT_TICKET_BODY_FIELDS)),
            "metadata": _compact({
                "ticket_id": _first(payload, _FLAT_TICKET_ID_FIELDS),
                "status": payload.get("status"),
                "priority": payload.get("priority"),
                "requester": _first(payload, _REQUESTER_FIELDS),
                "created_at": _first(payload, _CREATED_FIELDS),
            }),
        }]

    return []


def adapt_forum(payload: dict) -> list[FeedbackItem]:
    """Forum posts, either wrapped in ``post`` or sent flat."""
    post = _obj(payload, "post")
    if post:
        return [{
            "content": _with_body(f"Post: {post.get('title') or 'No Title'}", _first(post, _POST_BODY_FIELDS)),
            "metadata": _compact({
                "post_id": post.get("id"),
                "author": _first(post, _POST_AUTHOR_FIELDS),
                "forum": post.get("forum") or payload.get("forum"),
                "category": post.get("category"),
                "created_at": _first(post, _CREATED_FIELDS),
                "url": post.get("url"),
            }),
        }]

    if payload.get("title") or payload.get("content"):
        return [{
            "content": _with_body(f"Post: {payload.get('title') or 'No Title'}", _first(payload, _POST_BODY_FIELDS)),
            "metadata": _compact({
                "post_id": payload.get("id"),
                "author": _first(payload, _POST_AUTHOR_FIELDS),
                "forum": payload.get("forum"),
                "category": payload.get("category"),
                "created_at": _first(payload, _CREATED_FIELDS),
                "url": payload.get("url"),
            }),
        }]

    return []


def adapt_generic(payload: Any) -> list[FeedbackItem]:
    """Fallback for unknown sources: the raw payload becomes one item."""
    content = payload if isinstance(payload, str) and payload else json.dumps(payload, ensure_ascii=False)
    return [{"content": content, "metadata": {"raw": True}}]


ADAPTERS: dict[str, Callable[[dict], list[FeedbackItem]]] = {
    "github": adapt_github,
    "discord": adapt_discord,
    "twitter": adapt_twitter,
    "email": adapt_email,
    "support": adapt_support_ticket,
    "forum": adapt_forum,
}


def adapt_payload(source: str, payload: Any) -> list[FeedbackItem]:
    """Pick the adapter for *source* (case-insensitive exact match) and run it.

    Unknown sources, and payloads that are not JSON objects, go through
    ``adapt_generic``. Items without any text are dropped.
    """
    adapter = ADAPTERS.get(source.lower())
    if adapter is None:
        return adapt_generic(payload)

    if not isinstance(payload, dict):
        logger.warning("adapter_mismatch", source=source, payload_type=type(payload).__name__)
        return adapt_generic(payload)

    items = adapter(payload)
    return [item for item in items if item["content"].strip()]
