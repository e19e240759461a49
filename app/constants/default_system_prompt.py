class DefaultSystemPrompt:
    """Persona, directives and fallback replies for the relay."""

    PERSONA = "Você é um assistente de rotina médica."

    LANGUAGE_DIRECTIVE = "Responda em PT-BR, breve e útil."

    SINGLE_PROMPT_TEMPLATE = (
        "{persona} Histórico curto: {history}.\n"
        "Pergunta do usuário: {text}\n"
        "{language_directive}"
    )

    # Substituted when generation succeeds without usable text.
    WEBHOOK_FALLBACK = "Não consegui gerar uma resposta agora."
    CHAT_FALLBACK = "Desculpe, não consegui responder agora."
