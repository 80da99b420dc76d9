"""Bearer-token identity: JWT verification, credential sources and client token holders."""
