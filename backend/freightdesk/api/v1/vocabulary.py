"""
Status vocabulary API endpoint.
"""

from fastapi import APIRouter

from freightdesk.api.deps import CurrentIdentity, Vocabulary
from freightdesk.schemas.vocabulary import StatusEntry, VocabularyResponse

router = APIRouter(prefix="/vocabulary", tags=["vocabulary"])


@router.get(
    "",
    response_model=VocabularyResponse,
    summary="Get status vocabulary",
)
async def get_status_vocabulary(
    identity: CurrentIdentity,
    vocabulary: Vocabulary,
) -> VocabularyResponse:
    """Statuses, transitions, aliases and priorities the server accepts."""
    return VocabularyResponse(
        version=vocabulary.version,
        initial=vocabulary.initial_status,
        statuses=[
            StatusEntry(
                name=definition.name.upper(),
                label=definition.label,
                transitions=sorted(vocabulary.allowed_transitions(definition.name)),
                tags=sorted(tag.value for tag in definition.tags),
                terminal=definition.is_terminal,
            )
            for definition in vocabulary.statuses
        ],
        aliases=vocabulary.alias_map,
        priorities=vocabulary.priority_names,
        default_priority=vocabulary.default_priority.upper(),
    )
