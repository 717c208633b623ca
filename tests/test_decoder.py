import pytest

from tinyboy.avr import FlowClass, Opcode, decode, is_conditional, read_word
from tinyboy.exceptions import DecodeError

from tests.conftest import NOP, RET, IJMP, assemble


def test_read_word_is_little_endian():
    flash = assemble(0x1234)
    assert read_word(flash, 0) == 0x1234
    with pytest.raises(DecodeError):
        read_word(flash, 2)


def test_nop():
    insn = decode(assemble(NOP), 0)
    assert insn.opcode is Opcode.NOP
    assert insn.width == 2
    assert insn.flow is FlowClass.SEQUENTIAL
    assert insn.next_address == 2


def test_rjmp_backwards():
    # RJMP -4 placed at 0x0006 lands on 0x0000
    flash = assemble(NOP, NOP, NOP, 0xCFFC)
    insn = decode(flash, 6)
    assert insn.opcode is Opcode.RJMP
    assert insn.k == -4
    assert insn.target == 0


def test_rcall_forward():
    flash = assemble(0xD002, NOP, NOP, RET)
    insn = decode(flash, 0)
    assert insn.opcode is Opcode.RCALL
    assert insn.flow is FlowClass.CALL
    assert insn.target == 6


def test_call_is_wide_and_absolute():
    flash = assemble(0x940E, 0x0010)
    insn = decode(flash, 0)
    assert insn.opcode is Opcode.CALL
    assert insn.width == 4
    assert insn.k == 0x10
    assert insn.target == 0x20
    assert insn.next_address == 4


def test_jmp():
    insn = decode(assemble(0x940C, 0x0003), 0)
    assert insn.opcode is Opcode.JMP
    assert insn.flow is FlowClass.JUMP
    assert insn.target == 6


def test_lds_is_wide_but_sequential():
    insn = decode(assemble(0x9100, 0x0060), 0)
    assert insn.opcode is Opcode.LDS
    assert insn.width == 4
    assert insn.flow is FlowClass.SEQUENTIAL


def test_truncated_wide_instruction():
    with pytest.raises(DecodeError):
        decode(assemble(0x940E), 0)


@pytest.mark.parametrize(
    "word,opcode",
    [
        (0xF009, Opcode.BREQ),
        (0xF409, Opcode.BRNE),
        (0xF008, Opcode.BRCS),
        (0xF40F, Opcode.BRID),
    ],
)
def test_branch_aliases(word, opcode):
    insn = decode(assemble(word), 0)
    assert insn.opcode is opcode
    assert insn.flow is FlowClass.BRANCH
    assert insn.target == 4


def test_backward_branch():
    # BRNE -2 at 0x0004 targets 0x0002
    insn = decode(assemble(NOP, NOP, 0xF7F1), 4)
    assert insn.opcode is Opcode.BRNE
    assert insn.k == -2
    assert insn.target == 2


@pytest.mark.parametrize(
    "word,opcode",
    [
        (0x1001, Opcode.CPSE),
        (0xFC00, Opcode.SBRC),
        (0xFE00, Opcode.SBRS),
        (0x9900, Opcode.SBIC),
        (0x9B00, Opcode.SBIS),
    ],
)
def test_skips(word, opcode):
    insn = decode(assemble(word), 0)
    assert insn.opcode is opcode
    assert insn.flow is FlowClass.SKIP


@pytest.mark.parametrize("word", [RET, 0x9518])
def test_returns(word):
    assert decode(assemble(word), 0).flow is FlowClass.RETURN


@pytest.mark.parametrize("word", [IJMP, 0x9509, 0x9419, 0x9519])
def test_indirect(word):
    assert decode(assemble(word), 0).flow is FlowClass.INDIRECT


def test_erased_flash_is_unknown():
    with pytest.raises(DecodeError) as excinfo:
        decode(assemble(NOP, 0xFFFF), 2)
    assert excinfo.value.address == 2
    assert excinfo.value.word == 0xFFFF


def test_conditional_opcodes():
    assert is_conditional(Opcode.BRNE)
    assert is_conditional(Opcode.SBIS)
    assert not is_conditional(Opcode.RJMP)
    assert not is_conditional(Opcode.RET)
