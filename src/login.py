"""Interactive login helpers.

``parley login`` authorizes a session once from a terminal and stores it, so
the long-running service never has to prompt.
"""

from __future__ import annotations

import asyncio
import logging
import os
from getpass import getpass

from telethon import TelegramClient, errors

from adapters.qr_render import print_ascii
from core.ports import CredentialStorePort

LOGGER = logging.getLogger(__name__)


def resolve_2fa_password(interactive: bool = True) -> str:
    password = os.getenv("2FA")
    if password:
        return password
    if not interactive:
        raise RuntimeError("Account has 2FA enabled; set the 2FA environment variable")
    return getpass("2FA password: ")


async def _authorize_with_qr(client: TelegramClient) -> None:
    qr = await client.qr_login()
    while True:
        print_ascii(qr.url)
        try:
            await qr.wait(timeout=120)
            return
        except asyncio.TimeoutError:
            print("QR code expired, generating a new one...")
            await qr.recreate()


async def _authorize_with_phone(client: TelegramClient) -> None:
    phone = os.getenv("PHONE") or input("Phone number (international format): ").strip()
    await client.send_code_request(phone)
    code = input("Login code: ").strip()
    try:
        await client.sign_in(phone=phone, code=code)
    except errors.SessionPasswordNeededError:
        await client.sign_in(password=resolve_2fa_password())


def _pick_login_method() -> str:
    method = (os.getenv("LOGIN_METHOD") or "").strip().lower()
    if method in {"qr", "phone"}:
        return method
    while True:
        print("")
        print("Login methods:")
        print("[1] QR code")
        print("[2] Phone code")
        print("[3] Exit")
        print("Select a login method: \n")
        choice = input("parley > ").strip()
        if choice == "1":
            return "qr"
        elif choice == "2":
            return "phone"
        elif choice == "3":
            raise SystemExit(0)
        else:
            print("Invalid option. Please choose 1, 2, or 3.")


async def authorize(client: TelegramClient) -> None:
    if await client.is_user_authorized():
        return

    try:
        method = _pick_login_method()
        if method == "phone":
            await _authorize_with_phone(client)
        else:
            await _authorize_with_qr(client)
    except errors.SessionPasswordNeededError:
        await client.sign_in(password=resolve_2fa_password())


async def login_and_store(client: TelegramClient, credentials: CredentialStorePort, name: str) -> str:
    """Authorize ``client`` interactively and persist its session string."""

    await client.connect()
    try:
        await authorize(client)
        me = await client.get_me()
        credentials.save_credentials(name, client.session.save())
        display = getattr(me, "username", None) or getattr(me, "first_name", None) or me.id
        LOGGER.info("Logged in as: %s", display)
        return str(display)
    finally:
        await client.disconnect()
