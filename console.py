"""
Terminal front end: walks a Conversation step by step against a running API.

    giftbrief-console --api http://localhost:8000
"""

import argparse, asyncio

from client import ApiClient
from conversation import INPUT_LABELS, Conversation, ConversationState, Phase, Step

POLL_INTERVAL = 0.1


def _render(state: ConversationState) -> None:
    if state.phase is Phase.THINKING:
        print("…", flush=True)
    elif state.email_error:
        print(state.email_error, flush=True)


async def run(api_url: str) -> None:
    api = ApiClient(api_url)
    conversation = Conversation(api.generate, api.send_email, on_change=_render)
    try:
        while True:
            state = conversation.state
            if conversation.busy or state.step is Step.CALCULATING:
                await asyncio.sleep(POLL_INTERVAL)
                continue

            if state.step is Step.DONE:
                if state.narrative is not None:
                    print(f"\n{state.narrative.teaser}\n\n{state.narrative.preview}\n")
                    print(f"Your full strategy is on its way to {state.email}.")
                else:
                    print("\nWe couldn't build your strategy this time.")
                again = await asyncio.to_thread(input, "Have another problem? [y/N] ")
                if again.strip().lower() != "y":
                    return
                conversation.restart()
                continue

            answer = await asyncio.to_thread(input, f"{INPUT_LABELS[state.step]}\n> ")
            conversation.submit(answer)
    finally:
        conversation.close()


def main() -> None:
    parser = argparse.ArgumentParser(description="Conversational gifting strategy form")
    parser.add_argument("--api", default="http://localhost:8000", help="base URL of the giftbrief API")
    args = parser.parse_args()
    try:
        asyncio.run(run(args.api))
    except (KeyboardInterrupt, EOFError):
        pass


if __name__ == "__main__":
    main()
