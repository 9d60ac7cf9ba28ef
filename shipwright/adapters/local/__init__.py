"""Local collaborators — file-backed control plane and artifact store."""
