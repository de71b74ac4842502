"""Extraction of the raw TOF timing signal of tracks."""

import numpy as np

from tofpid.utils.globals import NS_TO_PS

__all__ = ["Run3SignalExtractor", "Run2SignalExtractor"]


class SignalExtractor:
    """Base class of the TOF signal extractors.

    Subclasses define how the signal is derived from the raw track fields
    and whether the track is usable for the particle identification.
    """

    name = ""

    def __call__(self, track):
        return self.extract(track)

    def extract(self, track):
        """Returns the TOF signal of one track.

        Parameters
        ----------
        track : Track
            Reconstructed track

        Returns
        -------
        float
            TOF signal (ps)
        bool
            Whether the track can be used for the particle identification
        """
        raise NotImplementedError("Must define the `extract` method.")

    def extract_batch(self, tracks, signal_sink=None, flag_sink=None):
        """Returns the TOF signal of a batch of tracks.

        Parameters
        ----------
        tracks : List[Track]
            (N) Reconstructed tracks
        signal_sink : TableSink, optional
            If provided, one signal record is appended per track
        flag_sink : TableSink, optional
            If provided, one usability record is appended per track

        Returns
        -------
        np.ndarray
            (N) TOF signals (ps)
        np.ndarray
            (N) Usability flags
        """
        signals = np.empty(len(tracks), dtype=np.float64)
        usable = np.empty(len(tracks), dtype=bool)
        for sink in (signal_sink, flag_sink):
            if sink is not None:
                sink.reserve(len(tracks))

        for i, track in enumerate(tracks):
            signals[i], usable[i] = self.extract(track)
            if signal_sink is not None:
                signal_sink.append(signals[i])
            if flag_sink is not None:
                flag_sink.append(usable[i])

        return signals, usable


class Run3SignalExtractor(SignalExtractor):
    """Run 3 extractor: the signal is the track time, converted to ps."""

    name = "run3"

    def extract(self, track):
        """Returns the TOF signal of one Run 3 track."""
        return track.track_time * NS_TO_PS, track.has_tof


class Run2SignalExtractor(SignalExtractor):
    """Run 2 extractor: the signal is stored as is with the track."""

    name = "run2"

    def extract(self, track):
        """Returns the TOF signal of one Run 2 track."""
        return track.tof_signal, True
