import asyncio
import sys

import uvicorn
from dotenv import load_dotenv
from loguru import logger

from grandparent_coach.app_config import load_json_config, parse_app_config, resolve_runtime_env
from grandparent_coach.bootstrap import build_chat_runtime, build_gateway_app
from grandparent_coach.chat import ChatConsole
from grandparent_coach.logging_config import setup_logging


def serve() -> None:
    load_dotenv()
    app = parse_app_config(load_json_config())
    env = resolve_runtime_env(app.provider_name)
    setup_logging(level=app.log_level, consumers=app.log_consumers)

    logger.info(f"Coach gateway listening on http://{app.gateway_host}:{app.gateway_port}")
    uvicorn.run(
        build_gateway_app(app, env),
        host=app.gateway_host,
        port=app.gateway_port,
        log_config=None,
    )


async def chat() -> None:
    load_dotenv()
    app = parse_app_config(load_json_config())
    env = resolve_runtime_env(app.provider_name)
    log_descriptions = setup_logging(level=app.log_level, consumers=app.log_consumers)

    runtime = build_chat_runtime(app, env)
    console = ChatConsole(runtime.orchestrator)

    print("Grandparent Coach (type 'exit' to quit, '/help' for commands)")
    print(f"Gateway: {env.gateway_url_override or app.gateway_url}")
    if log_descriptions:
        print(f"Logging: {', '.join(log_descriptions)}")
    print()

    try:
        while True:
            try:
                user_input = input("you> ")
            except (EOFError, KeyboardInterrupt):
                break

            trimmed = user_input.strip()
            if trimmed in ("exit", "quit"):
                break
            if not trimmed:
                continue

            try:
                await console.handle(trimmed)
                print()
            except ValueError as ex:
                print(f"coach> {ex}")
            except Exception as ex:
                logger.error(f"Unhandled error: {ex}")
    finally:
        await runtime.close()


def main() -> None:
    if len(sys.argv) > 1 and sys.argv[1] == "serve":
        serve()
    else:
        asyncio.run(chat())


if __name__ == "__main__":
    main()
