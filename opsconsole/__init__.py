"""Operations console backend: visual query builder service."""
