from __future__ import annotations

import logging
import sys
from typing import Optional

import stomplink
from pushport.config import CLIENT_CONFIG, load_config, topic_list
from pushport.consumer import FrameConsumer
from pushport.storage import PayloadStore
from stomplink.core.receiver import Terminated
from stomplink.protocol.errors import StompConnectionError, StompError, StompIOError
from stomplink.settings import SubscribePolicy

logger = logging.getLogger(__name__)


def run_client(env_path: str = ".env") -> int:
    load_config(env_path)
    logging.basicConfig(level=CLIENT_CONFIG["log_level"])
    store = PayloadStore(CLIENT_CONFIG["db_path"])
    consumer = FrameConsumer(store, render=CLIENT_CONFIG["render"])

    try:
        connection = stomplink.open(
            CLIENT_CONFIG["host"],
            CLIENT_CONFIG["port"],
            CLIENT_CONFIG["connect_timeout"],
            chunk_size=CLIENT_CONFIG["chunk_size"],
        )
    except StompConnectionError as exc:
        logger.error("%s", exc)
        store.close()
        return 1

    terminated: Optional[Terminated] = None
    try:
        connection.authenticate(CLIENT_CONFIG["username"], CLIENT_CONFIG["password"])
        policy = SubscribePolicy(escape_headers=CLIENT_CONFIG["escape_headers"])
        for identifier, topic in enumerate(topic_list()):
            connection.subscribe(identifier, topic, policy)
        terminated = consumer.run(connection.channel)
    except StompError as exc:
        logger.error("Session failed: %s", exc.to_payload())
        return 1
    except KeyboardInterrupt:
        logger.info("Interrupted, closing connection")
    finally:
        try:
            connection.close()
        except StompIOError as exc:
            logger.warning("Close failed: %s", exc)
        logger.info(
            "Handled %s frames (%s rejected), %s payloads stored",
            consumer.handled,
            consumer.failures,
            store.count(),
        )
        store.close()

    return 0 if terminated is None or terminated.ok else 1


if __name__ == "__main__":
    sys.exit(run_client())
