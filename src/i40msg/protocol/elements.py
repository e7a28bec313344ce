""" The payload tree carried in the body of a message. A payload is an
    ordered sequence of elements, and every element is one of exactly three
    variants:

    :class:`Property`
        A leaf holding a single scalar value, always transmitted as a string
        (or null), qualified by an XML-schema style *value_type*.

    :class:`Collection`
        A named group of child elements. Children keep their insertion
        order, but are expected to be looked up by *id_short*.

    :class:`List`
        An ordered sequence of children of one kind.

    Any element may carry a *semantic_id*, a :class:`Reference` naming its
    domain meaning, and a human-readable *description*. Neither is used for
    routing. The ``model_type`` discriminator is a class attribute; it is
    what the wire codec writes and dispatches on, and it cannot be set on an
    instance.

    All of these classes are frozen; child sequences are stored as tuples so
    that a message owns its payload tree outright.

    A payload tree may be at most :data:`maximum_depth` elements deep, a
    lone :class:`Property` being one level. Deeper trees are refused when
    they are constructed, since not every JSON library can encode them.
"""

from __future__ import annotations

from dataclasses import KW_ONLY, dataclass, field
from typing import ClassVar, Iterable, Iterator, Optional, Tuple

from . import fields


maximum_depth = 64


@dataclass(frozen=True)
class Key:
    type: str
    value: str


@dataclass(frozen=True)
class Reference:
    """ A semantic reference: an ordered chain of typed keys plus the kind of
        reference, ``ExternalReference`` unless stated otherwise.
    """

    keys: Tuple[Key, ...] = ()
    type: str = fields.EXTERNAL_REFERENCE

    def __post_init__(self):
        keys = tuple(self.keys)
        for key in keys:
            if not isinstance(key, Key):
                raise TypeError('reference keys must be Key instances, not ' + type(key).__name__)
        object.__setattr__(self, 'keys', keys)

    @property
    def value(self) -> Optional[str]:
        """ The value of the last key, which is what most references boil
            down to in practice.
        """

        if self.keys:
            return self.keys[-1].value
        return None


@dataclass(frozen=True)
class LangString:
    text: str
    language: str = 'de'


@dataclass(frozen=True)
class Element:
    """ Common base for the three payload variants. Not instantiated
        directly; the wire codec refuses anything that is not one of the
        concrete subclasses.
    """

    model_type: ClassVar[str] = ''

    id_short: str
    _: KW_ONLY
    semantic_id: Optional[Reference] = None
    description: Optional[Tuple[LangString, ...]] = None

    def __post_init__(self):
        if not isinstance(self.id_short, str):
            raise TypeError('id_short must be a string')

        if self.semantic_id is not None and not isinstance(self.semantic_id, Reference):
            raise TypeError('semantic_id must be a Reference')

        if self.description is not None:
            object.__setattr__(self, 'description', tuple(self.description))

    def walk(self) -> Iterator['Element']:
        """ Depth-first iteration over this element and all of its
            descendants.
        """

        yield self


@dataclass(frozen=True)
class Property(Element):

    model_type: ClassVar[str] = fields.PROPERTY

    value: Optional[str] = None
    value_type: str = fields.DEFAULT_VALUE_TYPE

    def __post_init__(self):
        Element.__post_init__(self)

        if self.value is not None and not isinstance(self.value, str):
            raise TypeError("Property '%s' value must be a string or None, not %s" % (self.id_short, type(self.value).__name__))


class _Branch:
    """ Shared behavior for the elements that hold children.
    """

    def _adopt(self):
        children = tuple(self.value)
        for child in children:
            if not isinstance(child, Element):
                raise TypeError("'%s' children must be payload elements, not %s" % (self.id_short, type(child).__name__))

        depth = 1 + max((getattr(child, '_depth', 1) for child in children), default=0)
        if depth > maximum_depth:
            raise ValueError("'%s' nests payload elements %d deep, the maximum is %d" % (self.id_short, depth, maximum_depth))

        object.__setattr__(self, 'value', children)
        object.__setattr__(self, '_depth', depth)
        return children

    def __iter__(self):
        return iter(self.value)

    def get(self, id_short, default=None):
        """ Return the first direct child with the requested *id_short*.
        """

        for child in self.value:
            if child.id_short == id_short:
                return child
        return default

    def walk(self):
        yield self
        for child in self.value:
            yield from child.walk()


@dataclass(frozen=True)
class Collection(_Branch, Element):

    model_type: ClassVar[str] = fields.COLLECTION

    value: Tuple[Element, ...] = field(default=())

    def __post_init__(self):
        Element.__post_init__(self)
        self._adopt()


@dataclass(frozen=True)
class List(_Branch, Element):
    """ A homogeneous ordered sequence: every child has the same model type.
        *element_type_hint* is carried verbatim on the wire as
        ``typeValueListElement``.
    """

    model_type: ClassVar[str] = fields.LIST

    value: Tuple[Element, ...] = field(default=())
    element_type_hint: Optional[str] = None

    def __post_init__(self):
        Element.__post_init__(self)
        children = self._adopt()

        kinds = set(child.model_type for child in children)
        if len(kinds) > 1:
            raise ValueError("List '%s' mixes element types: %s" % (self.id_short, ', '.join(sorted(kinds))))


variants = {
    Property.model_type: Property,
    Collection.model_type: Collection,
    List.model_type: List,
}


def walk(elements: Iterable[Element]) -> Iterator[Element]:
    """ Depth-first iteration over a whole payload.
    """

    for element in elements:
        yield from element.walk()


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
