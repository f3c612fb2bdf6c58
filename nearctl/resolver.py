"""Resolve one input value from a command-line flag or an interactive prompt.

Every field of every step goes through :func:`resolve_field`, and every menu
through :func:`resolve_choice`:

* a pre-supplied value that parses and passes its check is used as-is;
* offline (no connection) the network check is skipped entirely;
* a failing value prints a diagnostic and falls through to prompting;
* prompting repeats until the value passes, or raises
  :class:`ValidationExhausted` when the run cannot prompt.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional, Sequence, Tuple, TypeVar

from .context import NetworkConnection
from .prompts import InputUnavailable, Prompter
from .rpc_client import account_balance, account_exists, is_implicit_account
from .units import NearBalance

logger = logging.getLogger(__name__)

T = TypeVar("T")

Check = Callable[[T, NetworkConnection], Optional[str]]


class ValidationExhausted(RuntimeError):
    """Raised when a field cannot be resolved to a valid value."""

    def __init__(self, field: str, reason: str) -> None:
        super().__init__(f"could not resolve {field}: {reason}")
        self.field = field
        self.reason = reason


def _identity(raw: str) -> str:
    return raw


def _evaluate(
    raw: object,
    parse: Callable[[str], T],
    check: Check | None,
    connection: NetworkConnection | None,
) -> Tuple[T | None, str | None]:
    try:
        candidate = parse(raw) if isinstance(raw, str) else raw
    except ValueError as exc:
        return None, str(exc)
    if check is not None and connection is not None:
        problem = check(candidate, connection)
        if problem:
            return None, problem
    return candidate, None


def resolve_field(
    prompter: Prompter,
    connection: NetworkConnection | None,
    *,
    name: str,
    value: object | None,
    message: str,
    parse: Callable[[str], T] = _identity,  # type: ignore[assignment]
    check: Check | None = None,
    default: str | None = None,
) -> T:
    last_problem: str | None = None
    if value is not None:
        candidate, problem = _evaluate(value, parse, check, connection)
        if problem is None:
            return candidate  # type: ignore[return-value]
        prompter.notify(problem)
        last_problem = problem

    while True:
        try:
            raw = prompter.prompt(message, default)
        except InputUnavailable as exc:
            raise ValidationExhausted(name, last_problem or str(exc)) from exc
        candidate, problem = _evaluate(raw, parse, check, connection)
        if problem is None:
            return candidate  # type: ignore[return-value]
        logger.debug("Rejected %s=%r: %s", name, raw, problem)
        prompter.notify(problem)
        last_problem = problem


def resolve_choice(
    prompter: Prompter,
    *,
    name: str,
    value: str | None,
    options: Sequence[Tuple[str, str]],
    message: str,
) -> str:
    """Pick one key from ``options`` (``(key, label)`` pairs)."""

    keys = [key for key, _ in options]
    if value is not None:
        if value in keys:
            return value
        prompter.notify(f"'{value}' is not a valid {name}; expected one of: {', '.join(keys)}")
    try:
        index = prompter.select(message, [label for _, label in options])
    except InputUnavailable as exc:
        reason = str(exc) if value is None else f"'{value}' is not one of {', '.join(keys)}"
        raise ValidationExhausted(name, reason) from exc
    return keys[index]


# Checks -------------------------------------------------------------------


def account_must_exist(account_id: str, connection: NetworkConnection) -> str | None:
    if account_exists(connection, account_id):
        return None
    return f"Account <{account_id}> doesn't exist"


def receiver_must_exist(account_id: str, connection: NetworkConnection) -> str | None:
    """Like :func:`account_must_exist` but implicit accounts may be created by the transfer."""

    if is_implicit_account(account_id):
        return None
    return account_must_exist(account_id, connection)


def not_above(bound: NearBalance) -> Check:
    def check(amount: NearBalance, _connection: NetworkConnection) -> str | None:
        if amount <= bound:
            return None
        return f"You need to enter a value of no more than {bound}"

    return check


# Composite resolvers --------------------------------------------------------


def resolve_account_id(
    prompter: Prompter,
    connection: NetworkConnection | None,
    *,
    name: str,
    value: str | None,
    message: str,
    allow_implicit: bool = False,
) -> str:
    check = receiver_must_exist if allow_implicit else account_must_exist
    return resolve_field(
        prompter,
        connection,
        name=name,
        value=value,
        message=message,
        parse=parse_account_id,
        check=check,
    )


def parse_account_id(raw: str) -> str:
    account_id = raw.strip()
    if not account_id:
        raise ValueError("Account ID must not be empty")
    return account_id


def resolve_bounded_amount(
    prompter: Prompter,
    connection: NetworkConnection | None,
    *,
    name: str,
    value: str | None,
    message: str,
    account_id: str,
) -> NearBalance:
    """Resolve an amount that must not exceed ``account_id``'s balance when online."""

    check: Check | None = None
    default: str | None = None
    if connection is not None:
        bound = account_balance(connection, account_id)
        check = not_above(bound)
        default = str(bound)
    return resolve_field(
        prompter,
        connection,
        name=name,
        value=value,
        message=message,
        parse=NearBalance.parse,
        check=check,
        default=default,
    )
