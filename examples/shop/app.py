"""Shop — a host application wiring deep links into screens.

Demonstrates path-matching and typed plugins, a named login barrier,
a mandatory consent barrier that skips help links, and the not-found
and forbidden callbacks.

Run:
    python app.py "shop://app/product/42?ref=mail" "shop://app/checkout?cart=7"
"""

import json
import logging
import sys
from dataclasses import dataclass, field

import anyio

from waypoint import (
    AcceptWithBarrier,
    BarrierStatus,
    DispatchConfig,
    Dispatcher,
    Link,
    PathPlugin,
    TypedPlugin,
)


@dataclass
class Session:
    """Shared app state the barriers and plugins look at."""

    logged_in: bool = False
    consented: bool = False
    allow_login: bool = True
    screens: list[str] = field(default_factory=list)
    messages: list[str] = field(default_factory=list)


class ConsentBarrier:
    name = "consent"

    def __init__(self, session: Session) -> None:
        self.session = session

    def status(self, link: Link) -> BarrierStatus:
        return BarrierStatus.PASSED if self.session.consented else BarrierStatus.NEEDS_CHECK

    async def perform_check(self, link: Link) -> bool:
        # Stands in for a consent sheet
        await anyio.sleep(0)
        self.session.consented = True
        return True


class LoginBarrier:
    name = "login"

    def __init__(self, session: Session) -> None:
        self.session = session

    def status(self, link: Link) -> BarrierStatus:
        return BarrierStatus.PASSED if self.session.logged_in else BarrierStatus.NEEDS_CHECK

    async def perform_check(self, link: Link) -> bool:
        await anyio.sleep(0)
        self.session.logged_in = self.session.allow_login
        return self.session.logged_in


class ProductPlugin(PathPlugin):
    path = "/product/{id}"

    def __init__(self, session: Session) -> None:
        self.session = session

    def handle(self, payload, on_complete):
        params = json.loads(payload)
        self.session.screens.append(f"product:{params['id']}")
        on_complete()


@dataclass
class Checkout:
    cart: int
    coupon: str | None = None


class CheckoutPlugin(TypedPlugin[Checkout]):
    barrier = "login"

    def __init__(self, session: Session) -> None:
        self.session = session

    def should_handle_typed(self, link):
        if link.path != ("checkout",):
            return None
        return AcceptWithBarrier.with_params(self.barrier, dict(link.query))

    async def handle_typed(self, checkout, on_complete):
        # Screen transition
        await anyio.sleep(0)
        self.session.screens.append(f"checkout:{checkout.cart}")
        on_complete()


def build(session: Session) -> Dispatcher:
    dispatcher = Dispatcher(
        DispatchConfig(
            whitelist_schemes={"shop"},
            blacklist_hosts={"localhost"},
            excluded_schemes={"http", "https"},
        )
    )
    dispatcher.install(ProductPlugin(session), CheckoutPlugin(session))
    dispatcher.install_barrier(LoginBarrier(session))
    dispatcher.mandatory_barrier(ConsentBarrier(session), where=lambda link: link.host != "help")

    @dispatcher.not_found
    def not_found(link: Link) -> None:
        session.messages.append(f"not found: {link}")

    @dispatcher.forbidden
    def forbidden(link: Link) -> None:
        session.messages.append(f"forbidden: {link}")

    return dispatcher


async def main(urls: list[str]) -> None:
    session = Session()
    async with build(session) as dispatcher:
        for url in urls:
            dispatcher.submit(url)
    for screen in session.screens:
        print(screen)
    for message in session.messages:
        print(message)


if __name__ == "__main__":
    logging.basicConfig(level=logging.DEBUG)
    anyio.run(main, sys.argv[1:])
