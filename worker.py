"""
RQ worker entry point — consumes the classification queue.

    python worker.py
"""
import logging

from rq import Worker

from app import create_app
from app.extensions import rq_connection
from app.lifecycle.jobs import QUEUE_NAME

logger = logging.getLogger('worker')


def main():
    # Same logging, breakers and model registry as the web process
    create_app()
    logger.info("Starting RQ worker on queue '%s'", QUEUE_NAME)
    Worker([QUEUE_NAME], connection=rq_connection).work()


if __name__ == '__main__':
    main()
