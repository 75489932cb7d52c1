"""Context document sent to the backend alongside each request."""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class Section:
    """A named part of the context document.

    Inline sections render as `**Title:** body`; block sections get their own
    heading and, when `fenced`, a code fence.
    """

    name: str
    title: str
    body: str
    block: bool = False
    fenced: bool = True

    def render(self) -> str:
        if not self.block:
            return f"**{self.title}:** {self.body}\n"
        if self.fenced:
            return f"\n### {self.title}\n```\n{self.body}\n```\n"
        return f"\n### {self.title}\n{self.body}\n"


@dataclass
class ContextDocument:
    heading: str = "Terminal Context"
    sections: list[Section] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.sections)

    def names(self) -> list[str]:
        return [s.name for s in self.sections]

    def get(self, name: str) -> Section | None:
        for section in self.sections:
            if section.name == name:
                return section
        return None

    def extend(self, sections: list[Section]) -> None:
        self.sections.extend(sections)

    def render(self) -> str:
        body = "".join(s.render() for s in self.sections)
        return f"## {self.heading}\n\n{body}"
