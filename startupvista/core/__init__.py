# Core: configuration, security, tokens, identity provider, persistence
