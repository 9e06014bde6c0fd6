import time

from cinreg import RegistryConfig, RegistrySession, configure_logging
from cinreg.runtime import StoreServer, run


def main() -> None:
    configure_logging()

    store = run(port=57794)
    if isinstance(store, StoreServer):
        print(f"store server on {store.url}")
        store = store.as_store(poll_interval_s=0.2)

    session = RegistrySession(store, RegistryConfig(app_id="hello-cinreg"))
    if session.start() is None:
        print(session.view.message)
        return
    print(f"signed in as {session.identity.display_id}")

    session.view.update_form(cin="HIXA-834927-105562-4398", owner_name="Johnathan P. Smith", ssss="District Alpha")
    session.save()
    print(session.view.message)

    # Writes only show up once the change feed delivers them.
    while session.view.entry_count == 0:
        time.sleep(0.1)

    result = session.lookup("hixa 834927 105562 4398")
    print(result.status.value, result.cin, result.owner_name, result.ssss)

    try:
        while True:
            time.sleep(3600)
    except KeyboardInterrupt:
        pass
    finally:
        session.close()


if __name__ == "__main__":
    main()
