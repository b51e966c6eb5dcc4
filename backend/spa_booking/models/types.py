from sqlalchemy import Enum as SAEnum


class CaseInsensitiveEnum(SAEnum):
    """Enum column stored by value that tolerates mixed-case input.

    Rows written by other clients of the Store sometimes carry ``"Pending"``
    or ``"COMPLETED"``; both directions are lower-cased before the enum
    lookup.
    """

    def __init__(self, enum_cls, **kwargs):
        self._enum_cls = enum_cls
        self._enum_kwargs = kwargs.copy()
        kwargs.setdefault("values_callable", lambda enum: [e.value for e in enum])
        # Stored as plain VARCHAR so new values never need an ALTER TYPE
        kwargs.setdefault("native_enum", False)
        kwargs.setdefault("length", 32)
        super().__init__(enum_cls, **kwargs)

    def adapt(self, impltype, **kw):
        params = {**self._enum_kwargs, **kw}
        return CaseInsensitiveEnum(self._enum_cls, **params)

    @staticmethod
    def _lower(value):
        if value is None:
            return None
        if isinstance(value, str):
            return value.lower()
        return value.value

    def bind_processor(self, dialect):
        parent = super().bind_processor(dialect)

        def process(value):
            value = self._lower(value)
            if value is not None and parent:
                return parent(value)
            return value

        return process

    def result_processor(self, dialect, coltype):
        parent = super().result_processor(dialect, coltype)

        def process(value):
            value = self._lower(value)
            if value is not None and parent:
                return parent(value)
            return value

        return process
