"""Dramatiq broker selection for the scheduled-run actor.

The broker is chosen once, when :mod:`cadence.worker.actor` is imported, and
installed as Dramatiq's global broker so that ``dramatiq cadence.worker``
workers consume from the same broker the actor is bound to:

- ``CADENCE_BROKER_URL`` set: a RabbitMQ broker at that AMQP URL;
- otherwise, under pytest or with ``CADENCE_ALLOW_STUB_BROKER`` truthy: an
  in-process :class:`StubBroker`;
- otherwise: :class:`BrokerConfigError`.
"""

from __future__ import annotations

import os
import sys
import typing as typ

import dramatiq
from dramatiq.brokers.stub import StubBroker

if typ.TYPE_CHECKING:
    import collections.abc as cabc

BROKER_URL_ENV = "CADENCE_BROKER_URL"
ALLOW_STUB_ENV = "CADENCE_ALLOW_STUB_BROKER"

_TRUTHY = frozenset({"1", "true", "yes"})
_PYTEST_ENV_MARKERS = ("PYTEST_CURRENT_TEST", "PYTEST_XDIST_WORKER")


class BrokerConfigError(RuntimeError):
    """Raised when no Dramatiq broker can be selected."""

    @classmethod
    def missing_url(cls) -> BrokerConfigError:
        """Return an error for a production process without a broker URL."""
        return cls(
            f"No Dramatiq broker configured. Set {BROKER_URL_ENV} to an AMQP URL, "
            f"or {ALLOW_STUB_ENV}=1 for local runs."
        )


def stub_broker_allowed(environ: cabc.Mapping[str, str]) -> bool:
    """Return whether an in-process broker may stand in for RabbitMQ."""
    if environ.get(ALLOW_STUB_ENV, "").strip().lower() in _TRUTHY:
        return True
    return "pytest" in sys.modules or any(
        marker in environ for marker in _PYTEST_ENV_MARKERS
    )


def select_broker(environ: cabc.Mapping[str, str]) -> dramatiq.Broker:
    """Return the broker described by ``environ`` without installing it.

    Raises
    ------
    BrokerConfigError
        If no broker URL is set and a stub broker is not allowed.

    """
    url = environ.get(BROKER_URL_ENV, "").strip()
    if url:
        from dramatiq.brokers.rabbitmq import RabbitmqBroker

        return RabbitmqBroker(url=url)
    if stub_broker_allowed(environ):
        return StubBroker()
    raise BrokerConfigError.missing_url()


def install_broker(environ: cabc.Mapping[str, str] | None = None) -> dramatiq.Broker:
    """Select a broker from the environment and make it Dramatiq's global one."""
    broker = select_broker(os.environ if environ is None else environ)
    dramatiq.set_broker(broker)
    return broker
