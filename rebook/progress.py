"""Progress reporting for CLI narration."""

from tqdm import tqdm


class ProgressReporter:
    """Wraps tqdm for sentence-level narration progress."""

    def __init__(self, total_sentences: int, start: int = 0):
        self._bar = tqdm(
            total=total_sentences,
            initial=start,
            desc="Narrating",
            unit="sent",
            bar_format="{l_bar}{bar}| {n_fmt}/{total_fmt} sentences [{elapsed}<{remaining}]",
        )

    def update(self, sentence_index: int, page_index: int) -> None:
        """Move the bar to the cursor after a chunk has played."""
        target = min(sentence_index, self._bar.total)
        self._bar.set_postfix_str(f"page {page_index + 1}", refresh=False)
        self._bar.update(target - self._bar.n)

    def close(self) -> None:
        self._bar.close()
