import os

from app import create_app, db, socketio
from app.models import Match, Score, SettlementEntry, User, Wager
from app.storage import get_storage

app = create_app()


@app.shell_context_processor
def make_shell_context():
    return {
        "db": db,
        "storage": get_storage(),
        "User": User,
        "Match": Match,
        "Wager": Wager,
        "Score": Score,
        "SettlementEntry": SettlementEntry,
    }


if __name__ == "__main__":
    socketio.run(
        app,
        host=os.environ.get("HOST", "0.0.0.0"),
        port=int(os.environ.get("PORT", 5000)),
        debug=app.config.get("DEBUG", False),
        allow_unsafe_werkzeug=app.config.get("DEBUG", False),
    )
