# payments/updates.py

"""
Immutable ledger update builder.

A payment produces several partial updates of the ledger (fee correction,
balance, installment schedule, subscription, reminders). Each is added as a
named fragment; ``fold()`` merges them in ``FRAGMENT_ORDER`` so later
fragments win on overlapping fields, whatever order they were added in.
``stop_reminders`` is last and therefore always overrides reminder
scheduling.
"""

from types import MappingProxyType


FRAGMENT_ORDER = (
    'fees',
    'balance',
    'installments',
    'subscription',
    'reminders',
    'stop_reminders',
)


class LedgerUpdate:
    """
    Ordered collection of named ledger update fragments.

    Instances never change; ``with_fragment`` returns a new builder.

    Example:
        >>> update = LedgerUpdate().with_fragment('balance', {'status': 'Pending'})
        >>> update = update.with_fragment('fees', {'course_fee': Decimal('5000')})
        >>> update.fold()
        {'course_fee': Decimal('5000'), 'status': 'Pending'}
    """

    __slots__ = ('_fragments',)

    def __init__(self, fragments=None):
        frozen = {}
        for name, values in (fragments or {}).items():
            self._check_name(name)
            frozen[name] = MappingProxyType(dict(values))
        object.__setattr__(self, '_fragments', MappingProxyType(frozen))

    def __setattr__(self, name, value):
        raise AttributeError("LedgerUpdate is immutable; use with_fragment()")

    def __repr__(self):
        return f"LedgerUpdate({', '.join(self.names)})"

    def __bool__(self):
        return any(len(values) for values in self._fragments.values())

    @staticmethod
    def _check_name(name):
        if name not in FRAGMENT_ORDER:
            raise ValueError(f"Unknown ledger update fragment '{name}'")

    @property
    def names(self):
        return [name for name in FRAGMENT_ORDER if name in self._fragments]

    def fragment(self, name):
        self._check_name(name)
        return dict(self._fragments.get(name, {}))

    def with_fragment(self, name, values):
        """
        New builder with ``values`` stored under ``name``.

        Raises:
            ValueError: Unknown fragment name, or the fragment is already set
        """
        self._check_name(name)
        if name in self._fragments:
            raise ValueError(f"Ledger update fragment '{name}' is already set")
        fragments = {key: dict(value) for key, value in self._fragments.items()}
        fragments[name] = dict(values)
        return LedgerUpdate(fragments)

    def fold(self, until=None):
        """
        Merge fragments in FRAGMENT_ORDER.

        Args:
            until: Optional fragment name; fold only the fragments before it

        Returns:
            dict: field -> value
        """
        if until is not None:
            self._check_name(until)
        folded = {}
        for name in FRAGMENT_ORDER:
            if name == until:
                break
            folded.update(self._fragments.get(name, {}))
        return folded
