###############################################################################
#                                                                             #
#    This program is free software: you can redistribute it and/or modify     #
#    it under the terms of the GNU General Public License as published by     #
#    the Free Software Foundation, either version 3 of the License, or        #
#    (at your option) any later version.                                      #
#                                                                             #
#    This program is distributed in the hope that it will be useful,          #
#    but WITHOUT ANY WARRANTY; without even the implied warranty of           #
#    MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the            #
#    GNU General Public License for more details.                             #
#                                                                             #
#    You should have received a copy of the GNU General Public License        #
#    along with this program. If not, see <http://www.gnu.org/licenses/>.     #
#                                                                             #
###############################################################################

__author__ = 'Ben Coltman'
__author_email__ = 'ben.coltman@univie.ac.at'
__copyright__ = 'Copyright 2025'
__credits__ = ['Ben Coltman, Daan Speth']
__description__ = 'Compositional co-occurrence networks and latent niches from metagenomic abundance tables'
__license__ = 'GPL3'
__maintainer__ = 'Ben Coltman, Daan Speth'
__maintainer_email__ = 'daan.speth@univie.ac.at'
__python_requires__ = '>=3.9'
__status__ = 'development'
__title__ = 'nichecooc'
__url__ = 'https://github.com/bcoltman/nichecooc'
__version__ = '0.1.0'

from nichecooc.pantry import AbundanceTable, SampleMetadata
from nichecooc.compositional import normalize_abundance, clr_transform
from nichecooc.correlation import (
    CorrelationMatrix,
    log_ratio_variances,
    basis_variances,
    estimate_basis_correlations,
    bootstrap_pvalues,
    bh_qvalues,
)
from nichecooc.nmf import NMFResult, nmf, find_optimal_k
from nichecooc.network import CoOccurrenceNetwork, build_cooccurrence_network
from nichecooc.niche import NicheProfile, NicheAnalysisResult, analyze_niches
from nichecooc.synthetic import generate_demo_abundance_table
