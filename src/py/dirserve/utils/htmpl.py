from typing import Callable, Iterable, Iterator, Optional, Union, cast
from mypy_extensions import KwArg, VarArg

# --
# HTMPL builds HTML documents out of nodes, escaping text and attribute
# values as they are serialized.

HTML_EMPTY: set[str] = set(
	"area base br col embed hr img input link meta param source track wbr".split()
)
HTML_ESCAPED = str.maketrans(
	{"&": "&amp;", "<": "&lt;", ">": "&gt;", '"': "&quot;", "'": "&#x27;"}
)
HTML_QUOTED = str.maketrans({"&": "&amp;", '"': "&quot;"})


def escape(text: str) -> str:
	return text.translate(HTML_ESCAPED)


def quoted(text: Optional[str]) -> str:
	return text.translate(HTML_QUOTED) if text else ""


TNodeContent = Union["Node", str, int, float, None]
TAttributeContent = str | bool | float | int | None


class Node:
	__slots__ = ["name", "attributes", "children"]

	def __init__(
		self,
		name: str,
		children: Optional[Iterable[TNodeContent]] = None,
		attributes: Optional[dict[str, TAttributeContent]] = None,
	):
		self.name: str = name
		self.attributes: dict[str, TAttributeContent] = attributes or {}
		self.children: list[TNodeContent] = list(children) if children else []

	def iterHTML(self) -> Iterator[str]:
		if self.name == "#raw":
			yield str(self.attributes.get("#value") or "")
		else:
			yield f"<{self.name}"
			for k, v in self.attributes.items():
				if v is None or v is False:
					continue
				yield f" {k}" if v is True else f' {k}="{quoted(str(v))}"'
			yield ">"
			if self.name in HTML_EMPTY:
				return
			for _ in self.children:
				if isinstance(_, Node):
					yield from _.iterHTML()
				elif _ is None:
					pass
				else:
					yield escape(str(_))
			yield f"</{self.name}>"

	def __str__(self) -> str:
		return "".join(self.iterHTML())


def raw(value: str) -> Node:
	"""A node that is output as-is, without escaping."""
	return Node("#raw", attributes={"#value": value})


NodeFactory = Callable[
	[
		VarArg(TNodeContent | list[TNodeContent]),
		KwArg(TAttributeContent),
	],
	Node,
]


def nodeFactory(name: str) -> NodeFactory:
	def f(*children: TNodeContent | list[TNodeContent], **attributes: TAttributeContent) -> Node:
		content: list[TNodeContent] = []
		for _ in children:
			if isinstance(_, list) or isinstance(_, tuple):
				content += list(_)
			else:
				content.append(_)
		# `_` stands for `class`, which is a reserved word
		attrs: dict[str, TAttributeContent] = {
			("class" if k == "_" else k): v for k, v in attributes.items()
		}
		return Node(name, children=content, attributes=attrs)

	f.__name__ = name
	return cast(NodeFactory, f)


HTML_TAGS: list[str] = """\
a body div footer h1 head header html li link main meta nav p section small
span style title ul\
""".split()


class Markup:
	__slots__ = ["_factories"]

	def __init__(self, factories: dict[str, NodeFactory]):
		self._factories: dict[str, NodeFactory] = factories

	def __getattr__(self, name: str) -> NodeFactory:
		factories = self._factories
		if name not in factories:
			raise AttributeError(
				f"No tag {name}, pick one of {','.join(factories.keys())}"
			)
		return factories[name]


H: Markup = Markup({_: nodeFactory(_) for _ in HTML_TAGS})


def html(*nodes: Node, doctype: str | None = "html") -> Iterator[str]:
	"""Serializes the given nodes as an HTML document."""
	if doctype:
		yield f"<!DOCTYPE {doctype}>\n"
	for _ in nodes:
		yield from _.iterHTML()


# EOF
