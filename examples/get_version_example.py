from wallabag_api import WallabagClient, PreRequestEvent
import os


def log_request(event: PreRequestEvent) -> None:
    print(f"-> {event.method.value} {event.path} {event.parameters or ''}")


def log_response(response) -> None:
    print(f"<- {response.status_code}")


if __name__ == "__main__":
    # Reads WALLABAG_URL, WALLABAG_CLIENT_ID, WALLABAG_CLIENT_SECRET
    with WallabagClient.from_env(token_file=".wallabag_token.json") as wb:
        wb.hooks.add_before_request(log_request)
        wb.hooks.add_after_request(log_response)

        if not wb.token_manager.is_authenticated:
            wb.request_token(
                os.environ["WALLABAG_USERNAME"],
                os.environ["WALLABAG_PASSWORD"]
            )

        print("wallabag version:", wb.get_version())
