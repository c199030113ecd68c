from __future__ import annotations

import logging
from typing import Optional

from nextroute.annotations.model import Directive, HandlerDescriptor, Location, TypeRef
from nextroute.extractors.python.registry import MAPPING_MODULE
from nextroute.routing.naming import NameAllocator

logger = logging.getLogger(__name__)

# host values handed to the handler verbatim, never decoded
_MARKER_LOCATIONS: dict[tuple[str, str], Location] = {
    (MAPPING_MODULE, "Context"): "context",
    (MAPPING_MODULE, "Request"): "none",
    (MAPPING_MODULE, "ResponseWriter"): "none",
}


def _first_match(types: list[TypeRef], t: TypeRef) -> Optional[TypeRef]:
    for candidate in types:
        if candidate.same_type(t):
            return candidate
    return None


def classify_parameters(
    handler: HandlerDescriptor,
    directive: Optional[Directive],
    names: NameAllocator,
) -> list[str]:
    """
    Assign a binding location to every parameter of handler, in
    declaration order:

      marker type          -> context / none
      bind_query match     -> query
      bind_header match    -> header
      primitive            -> path
      anything else        -> body

    Returns the URL names of the path parameters. Unnamed results get
    synthetic names from the same allocator.
    """
    bind_query = directive.bind_query if directive else []
    bind_header = directive.bind_header if directive else []

    path_names: list[str] = []
    body_seen = ""

    for p in handler.params:
        marker = _MARKER_LOCATIONS.get((p.type.module, p.type.name))
        if marker is not None:
            p.location = marker
            continue

        if _first_match(bind_query, p.type) is not None:
            p.location = "query"
            continue
        if _first_match(bind_header, p.type) is not None:
            p.location = "header"
            continue

        if p.type.is_primitive:
            p.location = "path"
            if p.name == handler.package_name and not p.path_param_name:
                # keep the URL name, rename the variable so it cannot
                # shadow the package
                p.path_param_name = p.name
                p.name = names.allocate(handler.key, f"{p.name}_param")
            path_names.append(p.url_name)
            continue

        p.location = "body"
        if body_seen:
            logger.warning(
                "%s: handler %s binds both %r and %r to the body; %r shadows %r",
                handler.position,
                handler.name,
                body_seen,
                p.name,
                p.name,
                body_seen,
            )
            handler.shadowed_body = body_seen
        body_seen = p.name

    for r in handler.results:
        if not r.name:
            r.name = names.result_name(handler.key, r.type)

    return path_names
