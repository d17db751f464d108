"""Tests for crispr_dav.analysis.aggregation module."""

import pytest

from crispr_dav.analysis.aggregation import (
    SiteAggregator,
    copy_readme,
    merge_tables,
    move_sample_images,
    sample_table_path,
)
from crispr_dav.core.models import HdrEdit, TargetSite
from crispr_dav.exceptions import AggregationError, CommandError

from conftest import SITE_B_SEQ, write


class RecordingRunner:
    """Stands in for run_command; can fail commands whose text contains a marker."""

    def __init__(self, fail_on=None):
        self.commands = []
        self.fail_on = fail_on

    def __call__(self, command, log_path=None, message=None):
        self.commands.append(command)
        if self.fail_on and self.fail_on in str(command):
            raise CommandError(str(command), 2, message=message)
        return 0

    def scripts(self):
        return [c.argv[1] if c.argv[0].endswith('Rscript') else c.argv[0] for c in self.commands]


def write_sample_tables(ctx, site, kinds=('cnt', 'chr', 'snp', 'pct', 'len')):
    for sample in ctx.design.samples_for_target(site):
        for kind in kinds:
            write(
                sample_table_path(ctx.align_dir, sample, site, kind),
                f"Sample\tValue\n{sample}\t{kind}\n",
            )


class TestMergeTables:
    """Test table concatenation."""

    def test_single_header(self, tmp_path):
        """Test that N files give one header and N bodies in order."""
        a = write(tmp_path / "a.txt", "Sample\tReads\ns1\t10\ns1b\t11\n")
        b = write(tmp_path / "b.txt", "Sample\tReads\ns2\t20\n")
        out = merge_tables([a, b], tmp_path / "merged.txt")

        assert out.read_text() == "Sample\tReads\ns1\t10\ns1b\t11\ns2\t20\n"

    def test_values_verbatim(self, tmp_path):
        """Test that values are not converted."""
        a = write(tmp_path / "a.txt", "Sample\tPct\tCode\ns1\tNA\t007\n")
        b = write(tmp_path / "b.txt", "Sample\tPct\tCode\ns2\t1.50\t\n")
        out = merge_tables([a, b], tmp_path / "merged.txt")

        assert out.read_text() == "Sample\tPct\tCode\ns1\tNA\t007\ns2\t1.50\t\n"

    def test_lines_copied_unchanged(self, tmp_path):
        """Test that quotes, backslashes and short rows are not rewritten."""
        a = write(tmp_path / "a.txt", 'H1\tH2\tH3\nx\t"q"\t1\n')
        b = write(tmp_path / "b.txt", "H1\tH2\tH3\ny\ta\\b\nz\t1")
        out = merge_tables([a, b], tmp_path / "merged.txt")

        assert out.read_text() == 'H1\tH2\tH3\nx\t"q"\t1\ny\ta\\b\nz\t1\n'

    def test_header_only_file(self, tmp_path):
        """Test that a file with only a header adds no rows."""
        a = write(tmp_path / "a.txt", "Sample\tReads\n")
        b = write(tmp_path / "b.txt", "Sample\tReads\ns2\t20\n")
        out = merge_tables([a, b], tmp_path / "merged.txt")

        assert out.read_text() == "Sample\tReads\ns2\t20\n"

    def test_header_mismatch(self, tmp_path):
        """Test that differing headers are an error."""
        a = write(tmp_path / "a.txt", "Sample\tReads\ns1\t10\n")
        b = write(tmp_path / "b.txt", "Sample\tCount\ns2\t20\n")

        with pytest.raises(AggregationError, match="does not match"):
            merge_tables([a, b], tmp_path / "merged.txt", site="siteA")

    def test_missing_input(self, tmp_path):
        """Test that a missing per-sample table is an error."""
        a = write(tmp_path / "a.txt", "Sample\tReads\ns1\t10\n")

        with pytest.raises(AggregationError, match="CRISPR site siteA: Missing input table"):
            merge_tables([a, tmp_path / "b.txt"], tmp_path / "merged.txt", site="siteA")

    def test_empty_input(self, tmp_path):
        """Test that a zero-byte table is an error."""
        a = write(tmp_path / "a.txt", "")

        with pytest.raises(AggregationError, match="Could not read"):
            merge_tables([a], tmp_path / "merged.txt")

    def test_undecodable_input(self, tmp_path):
        """Test that a table that is not UTF-8 is an error."""
        a = tmp_path / "a.txt"
        a.write_bytes(b"\xff\xfe\x00H\n")

        with pytest.raises(AggregationError, match="CRISPR site siteA: Could not read"):
            merge_tables([a], tmp_path / "merged.txt", site="siteA")


class TestPaths:
    """Test per-sample file naming."""

    def test_sample_level_kinds(self, tmp_path):
        """Test that cnt and chr tables are per sample."""
        assert sample_table_path(tmp_path, "s1", "siteA", "cnt") == tmp_path / "s1.cnt"
        assert sample_table_path(tmp_path, "s1", "siteA", "chr") == tmp_path / "s1.chr"

    def test_site_level_kinds(self, tmp_path):
        """Test that other tables are per sample and site."""
        assert sample_table_path(tmp_path, "s1", "siteA", "pct") == tmp_path / "s1.siteA.pct"

    def test_move_images(self, tmp_path):
        """Test moving the sample plots for a site."""
        write(tmp_path / "s1.siteA.len.png", "new")
        write(tmp_path / "s1.siteB.len.png", "other site")
        write(tmp_path / "s1.siteA.len.tif", "other format")
        dest = tmp_path / "Assets"
        write(dest / "s1.siteA.len.png", "old")

        moved = move_sample_images(tmp_path, ["s1"], "siteA", "png", dest)

        assert moved == [dest / "s1.siteA.len.png"]
        assert (dest / "s1.siteA.len.png").read_text() == "new"
        assert (tmp_path / "s1.siteB.len.png").exists()
        assert (tmp_path / "s1.siteA.len.tif").exists()

    def test_copy_readme(self, tmp_path):
        """Test copying the intermediate file description."""
        bin_dir = tmp_path / "bin"
        align = tmp_path / "align"
        align.mkdir()
        assert copy_readme(bin_dir, align) is None

        write(bin_dir / "interm_file_desc", "files")
        assert copy_readme(bin_dir, align).read_text() == "files"


class TestSiteAggregator:
    """Test aggregation of a whole run."""

    def test_site_without_hdr(self, run_context):
        """Test merged tables, plots and report for siteA."""
        write_sample_tables(run_context, "siteA")
        write(run_context.align_dir / "s1.siteA.len.png", "plot")
        runner = RecordingRunner()

        results = SiteAggregator(run_context, run=runner).run()

        align = run_context.align_dir
        assert results["siteA"] == [align / f"siteA_{k}.txt" for k in ("cnt", "chr", "snp", "pct", "len")]
        assert not (align / "siteA_hdr.txt").exists()
        assert not (align / "siteA_can.txt").exists()
        assert (align / "siteA_cnt.txt").read_text() == "Sample\tValue\ns1\tcnt\ns2\tcnt\n"
        assert (run_context.assets_dir("siteA") / "s1.siteA.len.png").exists()

        scripts = [s.rsplit('/', 1)[-1] for s in runner.scripts()]
        assert scripts == ["read_stats.R", "read_chr.R", "indel.R", "report.pl"]

    def test_site_with_hdr_and_alignment_view(self, run_context):
        """Test that HDR sites get an hdr table and the alignment view is created."""
        site = run_context.design.targets["siteA"]
        run_context.design.targets["siteA"] = TargetSite(
            site.name, site.chrom, site.start, site.end, site.sequence, site.strand,
            hdr_edits=(HdrEdit(130, "C"),),
        )
        run_context.alignment_view = True
        write_sample_tables(run_context, "siteA", kinds=('cnt', 'chr', 'snp', 'pct', 'len', 'can', 'hdr'))
        runner = RecordingRunner()

        results = SiteAggregator(run_context, run=runner).run()

        assert len(results["siteA"]) == 7
        scripts = [s.rsplit('/', 1)[-1] for s in runner.scripts()]
        assert scripts == [
            "read_stats.R", "read_chr.R", "indel.R",
            "crispr2cx.pl", "crispr2cx.pl", "hdr.R", "report.pl",
        ]

    def test_failing_site_isolated(self, run_context):
        """Test that one site's failure does not stop the others."""
        design = run_context.design
        design.targets["siteB"] = TargetSite("siteB", "chr1", 150, 170, SITE_B_SEQ, "-")
        design.add_association("s1", "siteB")
        write_sample_tables(run_context, "siteB")
        runner = RecordingRunner()

        with pytest.raises(AggregationError) as excinfo:
            SiteAggregator(run_context, run=runner).run()

        message = str(excinfo.value)
        assert "1 CRISPR site(s)" in message
        assert "CRISPR site siteA" in message
        assert (run_context.align_dir / "siteB_pct.txt").exists()
        assert any("--cname" in c.argv and "siteB" in c.argv for c in runner.commands)

    def test_unreadable_table_isolated(self, run_context):
        """Test that a site with an undecodable table does not stop the next site."""
        design = run_context.design
        design.targets["siteB"] = TargetSite("siteB", "chr1", 150, 170, SITE_B_SEQ, "-")
        design.add_association("s1", "siteB")
        write_sample_tables(run_context, "siteA")
        write_sample_tables(run_context, "siteB")
        (run_context.align_dir / "s1.siteA.snp").write_bytes(b"\xff\xfe\x00\n")
        runner = RecordingRunner()

        with pytest.raises(AggregationError) as excinfo:
            SiteAggregator(run_context, run=runner).run()

        message = str(excinfo.value)
        assert "1 CRISPR site(s)" in message
        assert "CRISPR site siteA: Could not read" in message
        assert (run_context.align_dir / "siteB_len.txt").exists()

    def test_command_failure(self, run_context):
        """Test that a failing plot names the command and exit status."""
        write_sample_tables(run_context, "siteA")
        runner = RecordingRunner(fail_on="indel.R")

        with pytest.raises(AggregationError, match="exit status 2"):
            SiteAggregator(run_context, run=runner).run()

        assert not any(c.argv[0].endswith("report.pl") for c in runner.commands)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
