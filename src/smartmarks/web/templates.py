"""Liquid templates for the two browser pages."""

from typing import Any

import structlog
from liquid import Environment

logger = structlog.get_logger(__name__)

_env = Environment(autoescape=True)

BASE_STYLE = """
body { font-family: system-ui, sans-serif; background: #f9fafb; color: #111827; margin: 0; }
main { max-width: 960px; margin: 0 auto; padding: 48px 16px; }
header { display: flex; justify-content: space-between; align-items: center; margin-bottom: 32px; }
form.card, li.card { background: #fff; border: 1px solid #e5e7eb; border-radius: 12px; padding: 16px; }
ul.grid { list-style: none; padding: 0; display: grid; gap: 16px; grid-template-columns: repeat(auto-fill, minmax(260px, 1fr)); }
.error { background: #fee2e2; color: #991b1b; padding: 12px; border-radius: 8px; }
.empty { color: #6b7280; text-align: center; }
img.avatar { width: 32px; height: 32px; border-radius: 50%; }
"""

LOGIN_TEMPLATE = """<!doctype html>
<html lang="en">
<head><meta charset="utf-8"><title>Sign in - Smart Bookmarks</title><style>{{ style }}</style></head>
<body>
<main>
  <h1>Smart Bookmarks</h1>
  {% if error %}
  <p class="error" role="alert">
    Sign-in failed{% if message %}: {{ message }}{% endif %}{% if code %} ({{ code }}){% endif %}
  </p>
  {% endif %}
  <p><a href="/auth/signin?provider={{ provider | url_encode }}">Continue with {{ provider | capitalize }}</a></p>
  <form id="magic-link" class="card">
    <label for="email">Or get a sign-in link by email</label>
    <input type="email" id="email" name="email" required placeholder="you@example.com">
    <button type="submit">Send link</button>
    <p id="magic-link-status"></p>
  </form>
</main>
<script>
document.getElementById("magic-link").addEventListener("submit", async (event) => {
  event.preventDefault();
  const status = document.getElementById("magic-link-status");
  const response = await fetch("/auth/magic-link", {
    method: "POST",
    headers: {"Content-Type": "application/json"},
    body: JSON.stringify({email: document.getElementById("email").value}),
  });
  status.textContent = response.ok ? "Check your inbox." : (await response.json()).message;
});
</script>
</body>
</html>
"""

HOME_TEMPLATE = """<!doctype html>
<html lang="en">
<head><meta charset="utf-8"><title>Smart Bookmarks</title><style>{{ style }}</style></head>
<body>
<main>
  <header>
    <div>
      <h1>Smart Bookmarks</h1>
      <p>Manage your private collection in real-time.</p>
    </div>
    <div>
      {% if user.avatar_url %}<img class="avatar" src="{{ user.avatar_url }}" alt="User Avatar">{% endif %}
      <span>{{ user.email }}</span>
      <form action="/auth/signout" method="post"><button>Sign Out</button></form>
    </div>
  </header>

  <form id="add-bookmark" class="card">
    <label for="title">Title</label>
    <input type="text" id="title" name="title" required placeholder="e.g. My Favorite Blog">
    <label for="url">URL</label>
    <input type="url" id="url" name="url" required placeholder="https://example.com">
    <button type="submit">Add Bookmark</button>
  </form>

  <ul id="bookmarks" class="grid">
    {% for bookmark in bookmarks %}
    <li class="card" data-id="{{ bookmark.id }}">
      <h3>{{ bookmark.title }}</h3>
      <a href="{{ bookmark.url }}" target="_blank" rel="noopener noreferrer">{{ bookmark.url }}</a>
      <button data-delete="{{ bookmark.id }}" title="Delete bookmark">Delete</button>
    </li>
    {% endfor %}
  </ul>
  <p id="live-status" class="error" role="status" hidden></p>
  <p id="empty" class="empty"{% if bookmarks.size > 0 %} hidden{% endif %}>No bookmarks yet. Add one above!</p>
</main>
<script>
const list = document.getElementById("bookmarks");
const empty = document.getElementById("empty");
const scheme = location.protocol === "https:" ? "wss" : "ws";
const socket = new WebSocket(scheme + "://" + location.host + "/ws/bookmarks");

function render(items) {
  list.replaceChildren(...items.map((bookmark) => {
    const item = document.createElement("li");
    item.className = "card";
    const title = document.createElement("h3");
    title.textContent = bookmark.title;
    const link = document.createElement("a");
    link.href = bookmark.url;
    link.target = "_blank";
    link.rel = "noopener noreferrer";
    link.textContent = bookmark.url;
    const remove = document.createElement("button");
    remove.dataset.delete = bookmark.id;
    remove.title = "Delete bookmark";
    remove.textContent = "Delete";
    item.append(title, link, remove);
    return item;
  }));
  empty.hidden = items.length > 0;
}

socket.addEventListener("message", (event) => {
  const message = JSON.parse(event.data);
  if (message.type === "bookmarks") render(message.items);
});
socket.addEventListener("close", (event) => {
  if (event.code === 4401) {
    location.assign("/login");
  } else if (event.code === 1011) {
    const status = document.getElementById("live-status");
    status.textContent = (event.reason || "Live updates unavailable") + ". Reloading shortly.";
    status.hidden = false;
    setTimeout(() => location.reload(), 5000);
  }
});
list.addEventListener("click", (event) => {
  const id = event.target.dataset && event.target.dataset.delete;
  if (id) socket.send(JSON.stringify({action: "delete", id: id}));
});
document.getElementById("add-bookmark").addEventListener("submit", async (event) => {
  event.preventDefault();
  const form = event.target;
  const response = await fetch("/api/v1/bookmarks", {
    method: "POST",
    headers: {"Content-Type": "application/json"},
    body: JSON.stringify({
      title: document.getElementById("title").value,
      url: document.getElementById("url").value,
    }),
  });
  if (response.ok) form.reset();
  else alert((await response.json()).message);
});
</script>
</body>
</html>
"""


def render_page(template: str, **context: Any) -> str:
    """Render a page template; values are HTML-escaped."""
    try:
        return _env.from_string(template).render(style=BASE_STYLE, **context)
    except Exception as e:
        logger.exception("page_render_failed", error=str(e))
        raise
