"""Texts the bot sends to clients. All in European Portuguese."""

GREETING = (
    "Olá! Sou a IA da FitAI. Irei atendê-lo da forma mais rápida e eficiente possível. "
    "Para começarmos, qual é o seu primeiro e último nome?"
)

# Prompt sent after a field is filled, keyed by the next field to collect
FIELD_PROMPTS = {
    'age': "Prazer, {name}! Qual a sua idade?",
    'goal': "Qual o seu objetivo principal? (ex: emagrecer, ganhar massa, etc)",
    'gender': "Perfeito! Agora preciso de mais algumas informações. Qual o seu género? (masculino/feminino)",
    'height': "Qual a sua altura em cm? (ex: 175)",
    'weight': "Qual o seu peso atual em kg? (ex: 70)",
}

INFO_ALREADY_COLLECTED = "As suas informações já foram recolhidas. Aguarde o processamento."

PAYMENT_REQUEST = "Obrigado {name}! Para receber o seu plano personalizado, faça o pagamento via MB Way: {link}"
PAYMENT_REMINDER = "Para finalizar, envie o comprovativo do pagamento MB Way para este número ou use o link: {link}"
PAYMENT_CONFIRMED = "Pagamento confirmado! Em instantes receberá o seu plano personalizado."

PLAN_READY = "✅ O seu plano personalizado está pronto! Descarregue-o aqui: {url}"
PLAN_FILENAME = "plano_fitai.pdf"
QUESTIONS_INVITE = "Se tiver alguma dúvida sobre o seu plano, basta enviar a sua pergunta aqui."
PLAN_GENERATION_FAILED = "Não foi possível gerar o seu plano neste momento. Envie uma nova mensagem para tentarmos novamente."
PLAN_LINK_UNAVAILABLE = "O seu plano foi gerado, mas o link para download não está disponível. A nossa equipa irá enviá-lo em breve."
MISSING_PROFILE = "Não foi possível encontrar os seus dados para gerar o plano."

EMPTY_QUESTION = "Por favor, envie a sua dúvida sobre o plano."
