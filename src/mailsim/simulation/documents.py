"""Document context merged across every uploaded document."""

from ..state.schema import DocumentContext, ExtractedConcept, ProcessedDocument, Theme


def merged_document_context(documents: list[ProcessedDocument]) -> DocumentContext | None:
    """
    Combine thesis, concepts, claims and summaries from all documents.

    Structure fields (document_type) come from the first document with a
    context. Returns None when no document has been analyzed.
    """
    contexts = [d.context for d in documents if d.context is not None]
    if not contexts:
        return None
    if len(contexts) == 1:
        return contexts[0]

    theses = [c.thesis for c in contexts if c.thesis]
    concepts: list[str] = []
    for context in contexts:
        for concept in context.core_concepts:
            if concept not in concepts:
                concepts.append(concept)

    return DocumentContext(
        document_type=contexts[0].document_type,
        thesis=" Additionally, ".join(theses),
        summary="\n\n--- From another document ---\n\n".join(
            c.summary for c in contexts if c.summary
        ),
        argument_structure=[a for c in contexts for a in c.argument_structure],
        core_concepts=concepts,
        claims=[claim for c in contexts for claim in c.claims],
        significance=" Furthermore, ".join(c.significance for c in contexts if c.significance),
    )


def all_concepts(documents: list[ProcessedDocument]) -> list[ExtractedConcept]:
    return [concept for d in documents for concept in d.concepts]


def all_themes(documents: list[ProcessedDocument]) -> list[Theme]:
    return [theme for d in documents for theme in d.themes]
