"""
ola.agent — Everything between the orchestrator and the adapters.

Modules:
    llm        ProviderClient (owns one adapter)
    thinking   <think> block detection and removal
    prompts    prompt assembly and hints
    renderer   rich console output and echo sinks
"""
