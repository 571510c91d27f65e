# Domain services: credential store, session issuer, role profiles
