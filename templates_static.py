"""Templates and static file generation."""

import config

# Template content
BASE_HTML = """<!doctype html>
<html>
<head>
  <meta charset="utf-8" />
  <meta name="viewport" content="width=device-width, initial-scale=1" />
  <title>{{ title or 'Portfolio' }}</title>
  <link rel="stylesheet" href="/static/app.css">
</head>
<body>
  <header class="topbar">
    <nav>
      <a href="/dashboard" class="brand">Portfolio</a>
    </nav>
  </header>
  <main class="container">
    {% block content %}{% endblock %}
  </main>
</body>
</html>
"""

DASHBOARD_HTML = """{% extends 'base.html' %}
{% block content %}
<h1>Dashboard</h1>
<section class="card">
  <h2>Storage</h2>
  <div class="meter"><span style="width: {{ usage.percentage }}%"></span></div>
  <p>{{ usage.usage_display }} <span class="muted">({{ usage.percentage }}%)</span></p>
  <p class="muted">{{ photo_count }} photos</p>
</section>
{% if sizes %}
<section class="card">
  <h2>Image sizes</h2>
  <table>
    <thead><tr><th>Name</th><th>Max size</th><th>Quality</th><th></th></tr></thead>
    <tbody>
    {% for name, spec in sizes.items() %}
      <tr>
        <td>{{ name }}</td>
        <td>{{ spec.width }} &times; {{ spec.height }}</td>
        <td>{{ spec.quality }}%</td>
        <td>{% if spec.is_custom %}<span class="chip">custom</span>{% endif %}</td>
      </tr>
    {% endfor %}
    </tbody>
  </table>
</section>
{% endif %}
{% endblock %}
"""

APP_CSS = """:root{--bg:#0f1115;--fg:#e5e7eb;--muted:#a1a1aa;--card:#111318;--chip:#2a2e37;--brand:#7aa2ff}
*{box-sizing:border-box}body{margin:0;background:var(--bg);color:var(--fg);font:15px/1.45 system-ui,-apple-system,Segoe UI,Roboto,Inter,Ubuntu,Helvetica,Arial}
a{color:var(--brand);text-decoration:none}.muted{color:var(--muted)}
.topbar{position:sticky;top:0;background:#0c0e13;border-bottom:1px solid #1c1f26}
nav{display:flex;gap:16px;align-items:center;padding:10px 16px}.brand{font-weight:700}
.container{max-width:960px;margin:0 auto;padding:16px}
.card{background:var(--card);border:1px solid #1f2430;border-radius:8px;padding:16px;margin-bottom:20px}
.meter{height:10px;background:var(--chip);border-radius:5px;overflow:hidden}.meter span{display:block;height:100%;background:var(--brand)}
table{width:100%;border-collapse:collapse}th,td{text-align:left;padding:6px 8px;border-bottom:1px solid #1f2430}
.chip{background:var(--chip);padding:2px 8px;border-radius:12px;font-size:12px}
"""


def ensure_assets() -> None:
    """Create templates/static on first run so the app needs no extra files."""
    config.TEMPLATES_DIR.mkdir(parents=True, exist_ok=True)
    config.STATIC_DIR.mkdir(parents=True, exist_ok=True)
    files = {
        config.TEMPLATES_DIR / "base.html": BASE_HTML,
        config.TEMPLATES_DIR / "dashboard.html": DASHBOARD_HTML,
        config.STATIC_DIR / "app.css": APP_CSS,
    }
    for p, content in files.items():
        if not p.exists():
            p.write_text(content, encoding="utf-8")
