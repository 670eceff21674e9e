"""
Request pipeline for the chat service.

Stage 1: Safety guard           (safety.py)
Stage 2: Complexity tier        (classifier.py)
Stage 3: Retrieval + context    (retrieval.py)
Stage 4: Prompt assembly        (prompt_assembler.py)
Stage 5: Generation dispatch    (dispatcher.py)
Stage 6: Stream re-framing      (reframer.py)

Orchestrated by: orchestrator.py
"""
