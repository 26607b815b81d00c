import sys
from typing import Optional

import typer
from pathlib import Path
from freshsheet.config import settings
from freshsheet.logging import logger, get_request_id

app = typer.Typer(no_args_is_help=True)

@app.callback()
def main():
    """
    FreshSheet procurement assistant CLI.
    """
    pass

@app.command(name="doctor")
def doctor():
    """
    Check system configuration and environment health.
    """
    logger.info("Running doctor check...")

    print("\n🩺 FreshSheet Doctor\n")

    # Check 1: Environment / Interpreter
    print(f"Python: {sys.version.split()[0]}")
    print(f"Prefix: {sys.prefix}")
    print(f"Request ID: {get_request_id()}")

    # Check 2: Configuration
    print("\n[Configuration]")
    print(f"OPENAI_MODEL_AGENT:         {settings.OPENAI_MODEL_AGENT}")
    print(f"OPENAI_MAX_OUTPUT_TOKENS:   {settings.OPENAI_MAX_OUTPUT_TOKENS}")
    print(f"GENERATION_TIMEOUT_SECONDS: {settings.GENERATION_TIMEOUT_SECONDS}")
    print(f"MAX_TOOL_ROUNDS:            {settings.MAX_TOOL_ROUNDS}")
    print(f"HISTORY_MAX_TURNS:          {settings.HISTORY_MAX_TURNS}")
    print(f"DATABASE_URL:               {settings.DATABASE_URL}")

    # Mask API Key
    api_key_status = "✅ Set" if settings.OPENAI_API_KEY and settings.OPENAI_API_KEY.get_secret_value() else "❌ Missing"
    print(f"OPENAI_API_KEY:             {api_key_status}")

    # Check 3: Data Directory
    data_dir = Path("data")
    if data_dir.exists() and data_dir.is_dir():
        print(f"\n[Data Directory]            ✅ Found: {data_dir.absolute()}")
    else:
        print(f"\n[Data Directory]            ❌ Missing: {data_dir.absolute()} (created by `db init`)")

    print("\nDoctor check complete.")


db_app = typer.Typer(help="Database management commands.")
app.add_typer(db_app, name="db")

@db_app.command("init")
def init():
    """Initialize the database tables."""
    from freshsheet.db import init_db
    try:
        init_db()
        logger.info("Database initialized successfully.")
        print("✅ Database initialized.")
    except Exception as e:
        logger.error(f"Failed to initialize database: {e}")
        print(f"❌ Failed: {e}")
        raise typer.Exit(code=1)

@db_app.command("seed")
def seed():
    """Load demo suppliers, restaurants, users and inventory."""
    from freshsheet.db import init_db, new_session
    from freshsheet.seed import seed_demo_data
    try:
        init_db()
        with new_session() as session:
            created = seed_demo_data(session)
    except Exception as e:
        logger.error(f"Seeding failed: {e}")
        print(f"❌ Failed: {e}")
        raise typer.Exit(code=1)

    print("✅ Demo data loaded.")
    for kind, count in created.items():
        print(f"  {kind}: {count} created")

@app.command("chat")
def chat(
    message: str,
    user_id: int = typer.Option(..., "--user-id", help="User to chat as."),
    conversation_id: Optional[str] = typer.Option(None, "--conversation-id", help="Continue this conversation."),
):
    """Send one message and print the event stream as it arrives."""
    from freshsheet.agent.service import start_chat
    from freshsheet.errors import FreshSheetError
    from freshsheet.llm.openai_client import get_generation_client

    try:
        stream = start_chat(message, user_id, conversation_id, client=get_generation_client())
    except FreshSheetError as e:
        print(f"❌ {e}")
        raise typer.Exit(code=1)

    failed = False
    for block in stream:
        sys.stdout.write(block)
        sys.stdout.flush()
        failed = block.startswith("event: error")
    if failed:
        raise typer.Exit(code=1)

@app.command("serve")
def serve(
    host: str = typer.Option("127.0.0.1", help="Interface to bind."),
    port: int = typer.Option(8000, help="Port to listen on."),
):
    """Run the HTTP API."""
    import uvicorn
    uvicorn.run("freshsheet.api:app", host=host, port=port)

if __name__ == "__main__":
    app()
