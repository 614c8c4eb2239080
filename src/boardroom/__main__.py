import argparse
import asyncio
import sys

from dotenv import load_dotenv
from loguru import logger

from boardroom.app_config import load_json_config, parse_app_config, resolve_runtime_env
from boardroom.bootstrap import bootstrap_runtime
from boardroom.engine import SessionEngine
from boardroom.errors import EngineError
from boardroom.memory.models import KIND_BOARD_MEETING, KIND_QUICK_AUDIT
from boardroom.streaming import ErrorChunk, MetadataChunk, TextChunk


def _read_line(prompt: str) -> str | None:
    try:
        return input(prompt)
    except (EOFError, KeyboardInterrupt):
        return None


async def run_audit(engine: SessionEngine, owner_id: str, session_id: str) -> None:
    session = engine.authorize(session_id, owner_id)
    opening = engine.opening_prompt(session)
    question = opening.get("question")
    while question is not None:
        print(f"\n{question['question']}\n  {question['subtext']}")
        user_input = _read_line("you> ")
        if user_input is None or user_input.strip() in ("exit", "quit"):
            return
        if not user_input.strip():
            continue
        try:
            result = await engine.submit_answer(session_id, owner_id, user_input)
        except EngineError as ex:
            logger.error(f"{type(ex).__name__}: {ex}")
            continue

        if not result.gate.passed:
            print(f"\nboard> {result.gate.challenge_message or result.gate.reason}")
            continue
        if not result.gate.is_specific:
            print(f"\n[note] {result.gate.reason}")
        if result.is_complete:
            break
        question = engine.opening_prompt(result.session).get("question")

    summary = engine.summarize(session_id, owner_id)
    print(f"\nAudit complete ({summary['message_count']} messages recorded).")


async def run_board(engine: SessionEngine, owner_id: str, session_id: str) -> None:
    session = engine.authorize(session_id, owner_id)
    opening = engine.opening_prompt(session)
    print(f"\n{opening['director']['name']}> {opening['message']}\n")

    while True:
        user_input = _read_line("you> ")
        if user_input is None or user_input.strip() in ("exit", "quit"):
            return
        if not user_input.strip():
            continue
        try:
            async for chunk in engine.open_stream(session_id, owner_id, user_input):
                if isinstance(chunk, MetadataChunk):
                    print(f"\n{chunk.persona['name']}> ", end="", flush=True)
                elif isinstance(chunk, TextChunk):
                    print(chunk.text, end="", flush=True)
                elif isinstance(chunk, ErrorChunk):
                    print(f"\n[error] {chunk.error}")
            print("\n")
        except EngineError as ex:
            logger.error(f"{type(ex).__name__}: {ex}")
            return

        if engine.authorize(session_id, owner_id).is_completed:
            print("The board meeting is adjourned.")
            return


async def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(prog="boardroom")
    parser.add_argument("kind", choices=["audit", "board"], help="session to run")
    parser.add_argument("--resume", metavar="SESSION_ID", help="continue an existing session")
    args = parser.parse_args(argv)

    load_dotenv()
    app = parse_app_config(load_json_config())
    env = resolve_runtime_env(app.provider_name)
    if not env.provider_api_key:
        logger.error(f"{env.provider_env_var} environment variable is required.")
        sys.exit(1)

    runtime = bootstrap_runtime(app, env)
    engine = runtime.engine
    kind = KIND_QUICK_AUDIT if args.kind == "audit" else KIND_BOARD_MEETING

    print("boardroom (type 'exit' to quit)")
    print(f"Store: {runtime.db_path}")
    if runtime.log_descriptions:
        print(f"Logging: {', '.join(runtime.log_descriptions)}")

    try:
        if args.resume:
            session_id = engine.authorize(args.resume, app.owner_id).id
        else:
            session_id = engine.start_session(app.owner_id, kind).session.id
        print(f"Session: {session_id}")

        if kind == KIND_QUICK_AUDIT:
            await run_audit(engine, app.owner_id, session_id)
        else:
            await run_board(engine, app.owner_id, session_id)
    except EngineError as ex:
        logger.error(f"{type(ex).__name__}: {ex}")
    finally:
        runtime.close()


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
