from html import escape
from typing import Iterable, Mapping, Optional


def tag(name: str, contents: str, attributes: Optional[Mapping[str, str]] = None) -> str:
    attrs = ''.join(
        f' {k}="{escape(str(v), quote=True)}"' for k, v in (attributes or {}).items()
    )
    return f'<{name}{attrs}>{contents}</{name}>'


def alist(items: Iterable[str], tag_name: str = 'ul') -> str:
    '''Wrap already-rendered HTML fragments in a list.'''
    return tag(tag_name, ''.join(tag('li', item) for item in items))


def error_text(message: str) -> str:
    return tag('span', escape(message), {'class': 'error'})
