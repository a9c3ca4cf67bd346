# -*- coding: utf-8 -*-
import torch
from torch import nn
from torch.nn import functional as F


class DRQN(nn.Module):
    """
    Deep recurrent Q-network.
    Each timestep sees a history window of `frames_per_timestep` frames:
      window u of the input covers frames[:, u : u + frames_per_timestep].
    Input:  frames [B, U + H - 1, S, S] in [0, 1], cont [U, B] in {0, 1}
    Output: q-values [U, B, output_count] and the final recurrent state.
    """
    def __init__(self, args):
        super().__init__()
        self.frames_per_timestep = args.frames_per_timestep
        self.output_count = args.output_count
        self.lstm_size = args.lstm_size
        self.use_lstm = args.use_lstm

        self.encoder = nn.Sequential(
            nn.Conv2d(self.frames_per_timestep, 32, kernel_size=8, stride=4), nn.ReLU(inplace=True),
            nn.Conv2d(32, 64, kernel_size=4, stride=2),                        nn.ReLU(inplace=True),
            nn.Conv2d(64, 64, kernel_size=3, stride=1),                        nn.ReLU(inplace=True),
            nn.Flatten(),
        )
        with torch.no_grad():
            probe = torch.zeros(1, self.frames_per_timestep, args.frame_size, args.frame_size)
            enc_out = self.encoder(probe).shape[1]  # 64*7*7 for 84x84

        if self.use_lstm:
            self.lstm = nn.LSTMCell(enc_out, self.lstm_size)
        else:
            self.ip1 = nn.Linear(enc_out, self.lstm_size)
        self.fc_q = nn.Linear(self.lstm_size, self.output_count)

    def initial_state(self, batch_size, device=None):
        h = torch.zeros(batch_size, self.lstm_size, device=device)
        return (h, h.clone())

    def forward(self, frames, cont, state=None):
        unroll, batch = cont.shape
        H = self.frames_per_timestep
        # Encode all windows in one pass: [U*B, H, S, S] -> [U, B, F]
        windows = torch.stack([frames[:, u:u + H] for u in range(unroll)], dim=0)
        z = self.encoder(windows.flatten(0, 1)).view(unroll, batch, -1)

        if not self.use_lstm:
            return self.fc_q(F.relu(self.ip1(z))), state

        if state is None:
            state = self.initial_state(batch, device=frames.device)
        h, c = state
        outputs = []
        for u in range(unroll):
            keep = cont[u].unsqueeze(1)   # [B, 1]; 0 resets the slot
            h, c = self.lstm(z[u], (h * keep, c * keep))
            outputs.append(self.fc_q(h))
        return torch.stack(outputs, dim=0), (h, c)
