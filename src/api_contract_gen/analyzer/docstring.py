"""Handler docstrings: description, documented parameters and deprecation.

Documented parameters that name a path parameter become its description in
the contract.
"""

import re
from typing import Any

from api_contract_gen.routing.reflection import HandlerInfo

SECTION_HEADERS = ("Args:", "Arguments:", "Parameters:", "Returns:", "Raises:", "Yields:", "Example:", "Examples:")
_SPHINX_PARAM = re.compile(r"^:param\s+(?:(\w[\w\[\], |]*)\s+)?(\w+):\s*(.*)$")
_GOOGLE_PARAM = re.compile(r"^(\w+)\s*(?:\(([^)]*)\))?:\s*(.*)$")
_DEPRECATED = re.compile(r"^(?:\.\.\s+deprecated::|Deprecated[:.]?)\s*(.*)$", re.IGNORECASE)

DEFAULT_DEPRECATION = "This route is deprecated"


class DocstringAnalyzer:
    def analyze(self, info: HandlerInfo) -> dict:
        result = self.parse(info.docstring or "")
        marker = getattr(info.func, "__deprecated__", None)
        if marker and result["deprecated"] is None:
            message = marker if isinstance(marker, str) else DEFAULT_DEPRECATION
            result["deprecated"] = {"deprecated": True, "message": message}
        return result

    def parse(self, docstring: str) -> dict[str, Any]:
        description: list[str] = []
        params: dict[str, dict] = {}
        deprecated = None
        in_description = True
        in_args = False

        for raw in docstring.splitlines():
            line = raw.strip()
            if not line:
                if description:
                    in_description = False
                continue

            found = _DEPRECATED.match(line)
            if found:
                deprecated = {"deprecated": True, "message": found.group(1).strip() or DEFAULT_DEPRECATION}
                in_description = False
                continue

            sphinx = _SPHINX_PARAM.match(line)
            if sphinx:
                params[sphinx.group(2)] = {"type": sphinx.group(1), "description": sphinx.group(3) or None}
                in_description = False
                continue

            if line in SECTION_HEADERS:
                in_args = line in ("Args:", "Arguments:", "Parameters:")
                in_description = False
                continue

            if in_args:
                google = _GOOGLE_PARAM.match(line)
                if google and raw.startswith((" ", "\t")):
                    params[google.group(1)] = {"type": google.group(2), "description": google.group(3) or None}
                continue

            if in_description and not line.startswith(":"):
                description.append(line)

        return {
            "description": " ".join(description) or None,
            "params": params,
            "deprecated": deprecated,
        }


def describe_parameters(path_parameters: dict, params: dict) -> dict:
    """Path parameters with the descriptions documented for them in the handler docstring."""
    described = {}
    for name, parameter in path_parameters.items():
        description = (params.get(name) or {}).get("description")
        described[name] = {**parameter, "description": description} if description else parameter
    return described
