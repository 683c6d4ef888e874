"""Rule engines for the dossier checklist and the immigration timeline."""
