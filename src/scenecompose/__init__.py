"""scenecompose — composition document transformation and validation.

Parse TSX-style composition documents into a structural tree, rewrite
them with semantics-aware passes (array-builder conversion, transition
repair, content augmentation), validate them across five static layers,
and generate text again. Long operations run through a checkpointed
session so they can be resumed after a time budget runs out.
"""
