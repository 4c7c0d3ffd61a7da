import os

# Force production env if your app reads this
os.environ.setdefault("APP_ENV", "production")

from treeofhope import create_app  # noqa: E402

app = create_app()
