from reprlib import recursive_repr


class Any:
    """
    Allow values to match from a choice of schemas.  :class:`Invalid` will be raised if none of
    them are valid for a given value.

    If no schemas are defined, this acts as a wildcard, i.e. it will match *any* value given.

    Attributes:
        choices (.Schema list):
            Set of valid schemas, or an empty set to match any possible value.
    """

    __slots__ = ("choices",)

    def __init__(self, *choices):
        self.choices = list(choices)

    def __eq__(self, other):
        return (self.choices == other.choices if isinstance(other, self.__class__)
                else tuple(self.choices) == other)

    def __hash__(self):
        return hash(tuple(self.choices))

    @recursive_repr()
    def __repr__(self):
        return "<{}{}>".format(self.__class__.__name__,
                               ": {}".format(", ".join(repr(choice) for choice in self.choices))
                               if self.choices else "")


class Nullable:
    """
    Allow values tested against the inner schema to hold a null value, e.g. ``Nullable(str)``
    matches both ``"foo"`` and ``None``.

    Attributes:
        schema (.Schema):
            Inner schema for non-null processing.
    """

    __slots__ = ("schema",)

    def __init__(self, schema):
        self.schema = schema

    def __eq__(self, other):
        return self.schema == (other.schema if isinstance(other, self.__class__) else other)

    def __hash__(self):
        return hash(self.schema)

    @recursive_repr()
    def __repr__(self):
        return "<{}: {!r}>".format(self.__class__.__name__, self.schema)


class Optional:
    """
    Allows keys matching the inner schema to not be present in the source :class:`dict`.

    Attributes:
        schema (.Schema):
            Inner schema for processing.
        default:
            Alternative value for when the key is missing.  This can be :data:`None` (the default),
            a static value, the :class:`list` or :class:`dict` constructor, or any callable that
            produces the desired value.
    """

    __slots__ = ("schema", "default")

    @classmethod
    def unwrap(cls, key):
        return (key.schema, key.default) if isinstance(key, cls) else (key, None)

    def __init__(self, schema, default=None):
        self.schema = schema
        self.default = default

    def __eq__(self, other):
        return self.schema == (other.schema if isinstance(other, self.__class__) else other)

    def __hash__(self):
        return hash(self.schema)

    @recursive_repr()
    def __repr__(self):
        return "<{}: {!r} -> {!r}>".format(self.__class__.__name__, self.schema, self.default)


class SchemaError(Exception):
    """
    Error with the definition of the schema itself, raised during validation.
    """


class Invalid(Exception):
    """
    Error with input data not matching the corresponding schema.
    """


class Validator:
    """
    Validation of schemas against input data.
    """

    STATIC = (int, float, bool, str)

    @classmethod
    def _at_path(cls, text, path):
        return "{}{}".format(text, " (path: {})".format(path) if path else "")

    @classmethod
    def _short(cls, obj):
        if obj is None:
            return "None"
        elif isinstance(obj, type):
            return obj.__name__
        else:
            return "{} {!r}".format(type(obj).__name__, obj)

    @classmethod
    def static(cls, obj, path, data):
        # Don't allow the usual subclassing of ints as bools.
        if obj is int and isinstance(data, int) and not isinstance(data, bool):
            return data
        elif obj is float and isinstance(data, (int, float)) and not isinstance(data, bool):
            return float(data)
        elif obj in (bool, str) and isinstance(data, obj):
            return data
        elif not isinstance(obj, type) and obj == data and type(obj) is type(data):
            return data
        else:
            raise Invalid(cls._at_path("Expecting {} but got {}"
                                       .format(cls._short(obj), cls._short(data)), path))

    @classmethod
    def any(cls, obj, path, data):
        if not obj.choices:
            return data
        excs = []
        for pos, choice in enumerate(obj.choices):
            try:
                return cls.dispatch(choice, "{}:any({})".format(path, pos), data)
            except Invalid as e:
                excs.append(e)
        raise Invalid(cls._at_path("No matches for Any()", path), *excs)

    @classmethod
    def list(cls, obj, path, data):
        if not isinstance(data, list):
            raise Invalid(cls._at_path("Expecting list but got {}"
                                       .format(cls._short(data)), path))
        elif obj is list or not obj:
            return data
        inner = obj[0] if len(obj) == 1 else Any(*obj)
        return [cls.dispatch(inner, "{}[{}]".format(path, pos), item)
                for pos, item in enumerate(data)]

    @classmethod
    def dict(cls, obj, path, data):
        if not isinstance(data, dict):
            raise Invalid(cls._at_path("Expecting dict but got {}"
                                       .format(cls._short(data)), path))
        elif obj is dict or not obj:
            return dict(data)
        parsed = {}
        typed = tuple(key for key in obj if isinstance(key, type))
        fixed = {Optional.unwrap(key)[0]: key for key in obj if not isinstance(key, type)}
        for name, key in fixed.items():
            here = "{}.{}".format(path, name)
            if name in data:
                parsed[name] = cls.dispatch(obj[key], here, data[name])
            elif isinstance(key, Optional):
                # Missing but optional keys are filled in and validated.
                default = key.default() if callable(key.default) else key.default
                parsed[name] = cls.dispatch(obj[key], here, default)
            else:
                raise Invalid(cls._at_path("Missing key {!r}".format(name), path))
        for name, value in data.items():
            if name in fixed:
                continue
            for match in typed:
                if isinstance(name, match):
                    parsed[name] = cls.dispatch(obj[match], "{}.{}".format(path, name), value)
                    break
            else:
                # Unmatched keys are passed through without further validation.
                parsed[name] = value
        return parsed

    @classmethod
    def dispatch(cls, obj, path, data):
        if isinstance(data, type):
            raise Invalid(cls._at_path("Expecting instance but got {} type"
                                       .format(data.__name__), path))
        elif isinstance(obj, Schema):
            return cls.dispatch(obj.raw, path, data)
        elif isinstance(obj, Nullable):
            return None if data is None else cls.dispatch(obj.schema, path, data)
        elif obj in cls.STATIC or isinstance(obj, cls.STATIC):
            return cls.static(obj, path, data)
        elif isinstance(obj, Any):
            return cls.any(obj, path, data)
        elif obj is list or isinstance(obj, list):
            return cls.list(obj, path, data)
        elif obj is dict or isinstance(obj, dict):
            return cls.dict(obj, path, data)
        else:
            raise SchemaError(cls._at_path("Unknown type {}".format(type(obj).__name__), path))

    @classmethod
    def walk(cls, obj, data):
        """
        Validate the given data against a schema.

        Args:
            obj (.Schema):
                Description of the data format.
            data:
                Input data to validate.

        Raises:
            Invalid:
                When a key or value doesn't match the accepted type for that field.

        Returns:
            Parsed data with optional values filled in.
        """
        return cls.dispatch(obj, "", data)


class Schema:
    """
    Validate JSON-like Python structures and provide defaults:

    .. code-block:: python

        config = Schema({
            "type": Any("sqlite", "mysql"),
            Optional("cooldown", 3): int,
            Optional("notifier"): Nullable(str),
        })

        validated = config(data)

    Pass a structure representing the expected data format to the constructor, along with an
    optional :data:`base` to extend from, then validate some given data against the schema by
    calling the instance.

    Attributes:
        raw:
            Root schema item, including any base items.
    """

    __slots__ = ("raw",)

    @classmethod
    def unwrap(cls, schema):
        return schema.raw if isinstance(schema, cls) else schema

    def __init__(self, raw, base=None):
        raw = Schema.unwrap(raw)
        if base is not None:
            base = Schema.unwrap(base)
            if not isinstance(raw, dict) or not isinstance(base, dict):
                raise SchemaError("Input and base schemas must both be dicts")
            merged = dict(base)
            merged.update(raw)
            raw = merged
        self.raw = raw

    def __call__(self, data):
        return Validator.walk(self, data)

    def __repr__(self):
        return "<{}: {!r}>".format(self.__class__.__name__, self.raw)
