# src/secret_deploy/core/__init__.py
"""
Core do Secret Deploy.

Reúne as responsabilidades do engine independentes de vault e de init
system concretos; ambos entram por protocolo (`SecretResolver`,
`InitSystem`).

Princípios fundamentais:
    - Nenhum arquivo de destino é observado com conteúdo parcial
    - O Hash Store só referencia conteúdo efetivamente escrito
    - Erros são tipados e serializáveis, sem conteúdo de secrets
"""
