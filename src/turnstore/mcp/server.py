"""MCP server exposing stored conversations."""

from mcp.server.fastmcp import FastMCP

from turnstore.errors import SessionStoreError
from turnstore.sessions.catalog import SessionCatalog
from turnstore.sessions.store import SessionStore

mcp = FastMCP("turnstore")
store = SessionStore()


@mcp.tool()
def list_sessions(limit: int = 20) -> list[dict]:
    """Browse recently modified conversations.

    Args:
        limit: Maximum results to return (default 20)
    """
    catalog = SessionCatalog(root=store.root)
    return [
        {
            "id": s.session_id,
            "title": s.title,
            "message_count": s.message_count,
            "created_at": s.created_at.isoformat(),
            "last_modified_at": s.last_modified_at.isoformat(),
        }
        for s in catalog.refresh()[:limit]
    ]


@mcp.tool()
def get_session(session_id: str) -> dict | str:
    """Get the full transcript of a conversation by ID.

    Images are omitted; only their count is reported.

    Args:
        session_id: The session ID to retrieve
    """
    try:
        result = store.load(session_id)
    except SessionStoreError as exc:
        return str(exc)

    session = result.session
    return {
        "id": session.session_id,
        "title": session.title,
        "created_at": session.created_at.isoformat(),
        "last_modified_at": session.last_modified_at.isoformat(),
        "previous_response_id": session.continuation_token,
        "recovered_from_backup": result.recovered,
        "messages": [
            {
                "role": t.role,
                "text": t.text,
                "images": len(getattr(t, "images", [])),
                "timestamp": t.timestamp.isoformat(),
            }
            for t in session.turns
        ],
        "tool_calls": [
            {"tool_name": c.tool_name, "arguments": c.arguments, "result": c.result}
            for c in session.tool_calls
        ],
    }


@mcp.tool()
def delete_session(session_id: str) -> dict:
    """Delete a stored conversation.

    Args:
        session_id: The session ID to delete
    """
    try:
        store.delete(session_id)
    except SessionStoreError as exc:
        return {"id": session_id, "status": "error", "error": str(exc)}
    return {"id": session_id, "status": "deleted"}
